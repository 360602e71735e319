"""
LLM Provider interface for abstracting LLM implementations.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from dataclasses import dataclass

JSON_SYSTEM_PROMPT = "Always respond with valid JSON only, matching this schema:\n{schema}"


@dataclass
class LLMResponse:
    """Standardized LLM response."""
    content: str
    tokens_in: int = 0
    tokens_out: int = 0
    model: str = ""
    cost_estimate: float = 0.0
    metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.metadata is None:
            self.metadata = {}

    @property
    def tokens_used(self) -> int:
        return self.tokens_in + self.tokens_out


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def chat(
        self,
        messages: list[Dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Generate a chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model identifier
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional provider-specific parameters

        Returns:
            LLMResponse with content and metadata
        """
        pass

    def generate(
        self,
        prompt: str,
        schema: Optional[Dict[str, Any]] = None,
        model: str = "gpt-4o-mini",
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Single-prompt completion.

        When a schema is given the provider is asked for a JSON object; the
        response content is still returned raw and validated by the caller.
        """
        messages = []
        system_parts = [system_prompt] if system_prompt else []
        if schema is not None:
            system_parts.append(JSON_SYSTEM_PROMPT.format(schema=schema))
            kwargs.setdefault("response_format", {"type": "json_object"})
        if system_parts:
            messages.append({"role": "system", "content": "\n\n".join(system_parts)})
        messages.append({"role": "user", "content": prompt})

        return self.chat(
            messages=messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs
        )

    def estimate_cost(self, tokens_in: int, tokens_out: int, model: str) -> float:
        """
        Estimate cost for a request.

        Args:
            tokens_in: Input tokens
            tokens_out: Output tokens
            model: Model identifier

        Returns:
            Estimated cost in USD
        """
        # Providers should override with actual pricing
        return 0.0
