"""
Generation runner: renders prompts, calls the provider under a timeout, returns raw responses.

Every call goes through a shared thread pool so a hung provider cannot hold a
request longer than GENERATION_TIMEOUT_SECONDS. Failures surface as
UpstreamFailure subclasses; callers decide how to degrade.
"""
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from pathlib import Path
from typing import Optional, Dict, Any

from applyai.core.config import GENERATION_MAX_WORKERS, GENERATION_TIMEOUT_SECONDS
from applyai.core.errors import GenerationError, GenerationTimeout, GenerationUnavailable
from applyai.llm.openai_provider import OpenAIProvider
from applyai.llm.provider import LLMProvider, LLMResponse
from applyai.llm.router import get_model_for_feature

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent / "prompts"
DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant for job applications."


class GenerationRunner:
    """Runs provider calls with a hard timeout."""

    def __init__(
        self,
        provider: Optional[LLMProvider] = None,
        timeout_seconds: Optional[float] = None,
        max_workers: Optional[int] = None,
    ):
        self.provider = provider
        if not self.provider:
            try:
                self.provider = OpenAIProvider()
            except ValueError:
                logger.warning("OpenAI provider not available - AI features degrade to basic mode")
                self.provider = None
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else GENERATION_TIMEOUT_SECONDS
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or GENERATION_MAX_WORKERS,
            thread_name_prefix="generation",
        )

    @property
    def available(self) -> bool:
        return self.provider is not None

    def _load_prompt_template(self, feature: str, version: str = "v1") -> str:
        """Load prompt template from file."""
        prompt_path = PROMPTS_DIR / f"{feature}_{version}.md"
        if prompt_path.exists():
            return prompt_path.read_text(encoding="utf-8")
        logger.warning(f"Prompt template not found: {prompt_path}")
        return f"You are an expert assistant. {feature} analysis requested."

    def render_prompt(self, feature: str, context: Dict[str, Any], version: str = "v1") -> str:
        """Fill {placeholders} in the feature's prompt template."""
        prompt = self._load_prompt_template(feature, version)
        for key, value in context.items():
            if isinstance(value, (dict, list)):
                value = json.dumps(value, indent=2)
            prompt = prompt.replace(f"{{{key}}}", str(value) if value else "")
        return prompt

    def generate(
        self,
        feature: str,
        prompt: str,
        schema: Optional[Dict[str, Any]] = None,
        plan: str = "free",
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        Call the provider for one feature.

        Args:
            feature: Feature name, used for model routing
            prompt: Rendered user prompt
            schema: Expected JSON shape, when structured output is wanted
            plan: User plan ("free" | "pro" | "elite")
            system_prompt: Override for the default system prompt
            temperature: Sampling temperature

        Returns:
            LLMResponse with raw content; metadata["response_time_ms"] is set

        Raises:
            GenerationUnavailable: no provider configured
            GenerationTimeout: provider did not answer in time
            GenerationError: provider raised or returned no text
        """
        if not self.provider:
            raise GenerationUnavailable("Generation service not configured")

        model = get_model_for_feature(feature, plan)
        started = time.monotonic()
        future = self._executor.submit(
            self.provider.generate,
            prompt,
            schema=schema,
            model=model,
            system_prompt=system_prompt or DEFAULT_SYSTEM_PROMPT,
            temperature=temperature,
        )

        try:
            response = future.result(timeout=self.timeout_seconds)
        except FutureTimeout:
            future.cancel()
            logger.warning(f"Generation timed out: feature={feature}, model={model}, timeout={self.timeout_seconds}s")
            raise GenerationTimeout(f"{feature} timed out after {self.timeout_seconds}s")
        except Exception as e:
            logger.error(f"Generation failed: feature={feature}, model={model}: {e}")
            raise GenerationError(str(e)) from e

        elapsed_ms = int((time.monotonic() - started) * 1000)
        if response is None or not isinstance(response.content, str) or not response.content.strip():
            logger.warning(f"Generation returned no text content: feature={feature}, model={model}")
            raise GenerationError(f"{feature} returned an empty response")

        response.metadata["response_time_ms"] = elapsed_ms
        logger.info(
            f"Generation completed: feature={feature}, model={model}, "
            f"tokens={response.tokens_used}, response_time_ms={elapsed_ms}"
        )
        return response

    def shutdown(self):
        self._executor.shutdown(wait=False, cancel_futures=True)


_runner: Optional[GenerationRunner] = None


def get_generation_runner() -> GenerationRunner:
    """FastAPI dependency returning the process-wide runner."""
    global _runner
    if _runner is None:
        _runner = GenerationRunner()
    return _runner


def shutdown_generation_runner():
    """Stop the process-wide runner's workers; called on app shutdown."""
    global _runner
    if _runner is not None:
        _runner.shutdown()
        _runner = None
