"""
Tests for the generation runner: prompt rendering, timeouts and error mapping.
"""
import time
import pytest

from applyai.core.config import OPENAI_MODEL
from applyai.core.errors import GenerationError, GenerationTimeout, GenerationUnavailable
from applyai.llm.provider import LLMProvider, LLMResponse
from applyai.llm.router import get_model_for_feature
from applyai.llm import runner as runner_module
from applyai.llm.runner import GenerationRunner, get_generation_runner, shutdown_generation_runner


class EchoProvider(LLMProvider):
    """Returns a fixed reply and remembers the last call."""

    def __init__(self, content='{"score": 70}', delay=0.0, error=None):
        self.content = content
        self.delay = delay
        self.error = error
        self.last_call = None

    def chat(self, messages, model, temperature=0.7, max_tokens=None, **kwargs):
        self.last_call = {"messages": messages, "model": model, "temperature": temperature, **kwargs}
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return LLMResponse(content=self.content, tokens_in=30, tokens_out=12, model=model)


def test_generate_returns_response_with_timing():
    provider = EchoProvider()
    runner = GenerationRunner(provider=provider, timeout_seconds=2)

    response = runner.generate("ats_score", "Score this", schema={"score": "integer"})

    assert response.content == '{"score": 70}'
    assert response.tokens_used == 42
    assert "response_time_ms" in response.metadata
    assert provider.last_call["response_format"] == {"type": "json_object"}
    assert provider.last_call["messages"][-1] == {"role": "user", "content": "Score this"}
    assert "schema" in provider.last_call["messages"][0]["content"]


def test_plain_text_generation_has_no_json_mode():
    provider = EchoProvider(content="Dear Hiring Manager")
    runner = GenerationRunner(provider=provider, timeout_seconds=2)

    runner.generate("cover_letter", "Write a letter")

    assert "response_format" not in provider.last_call


def test_timeout_raises_generation_timeout():
    runner = GenerationRunner(provider=EchoProvider(delay=0.5), timeout_seconds=0.05)

    started = time.monotonic()
    with pytest.raises(GenerationTimeout):
        runner.generate("ats_score", "Score this")

    assert time.monotonic() - started < 0.4


def test_provider_error_raises_generation_error():
    runner = GenerationRunner(provider=EchoProvider(error=RuntimeError("boom")), timeout_seconds=2)

    with pytest.raises(GenerationError):
        runner.generate("ats_score", "Score this")


def test_empty_content_raises_generation_error():
    runner = GenerationRunner(provider=EchoProvider(content="   "), timeout_seconds=2)

    with pytest.raises(GenerationError):
        runner.generate("cv_tailor", "Tailor this")


def test_non_text_content_raises_generation_error():
    runner = GenerationRunner(provider=EchoProvider(content={"score": 70}), timeout_seconds=2)

    with pytest.raises(GenerationError):
        runner.generate("ats_score", "Score this")


def test_missing_provider_raises_unavailable(monkeypatch):
    monkeypatch.setattr("applyai.llm.openai_provider.OPENAI_API_KEY", None)
    runner = GenerationRunner()

    assert runner.available is False
    with pytest.raises(GenerationUnavailable):
        runner.generate("ats_score", "Score this")


def test_render_prompt_fills_placeholders():
    runner = GenerationRunner(provider=EchoProvider())

    prompt = runner.render_prompt("ats_score", {
        "resume_text": "Python developer",
        "job_description": "Senior Python role",
    })

    assert "Python developer" in prompt
    assert "Senior Python role" in prompt
    assert "{resume_text}" not in prompt


def test_model_routing_by_plan():
    assert get_model_for_feature("ats_score", "elite") == "gpt-4o-mini"
    assert get_model_for_feature("cover_letter", "elite") == "gpt-4o"
    assert get_model_for_feature("cover_letter", "free") == OPENAI_MODEL
    assert get_model_for_feature("unknown_feature") == OPENAI_MODEL


def test_shutdown_releases_shared_runner(monkeypatch):
    monkeypatch.setattr(runner_module, "_runner", GenerationRunner(provider=EchoProvider()))
    shared = get_generation_runner()

    shutdown_generation_runner()

    assert runner_module._runner is None
    with pytest.raises(RuntimeError):
        shared._executor.submit(time.sleep, 0)
    # Safe to call again with nothing running
    shutdown_generation_runner()
