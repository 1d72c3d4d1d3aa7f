"""Generation gateway: retry policy, error classification and parsing."""

import asyncio

import httpx
import openai
import pytest

from app.config.settings import Settings
from app.errors import ErrorTag, UpstreamError
from app.services.llm_gateway import LLMGateway
from app.utils.token_counter import TokenCounter

from fakes import FakeChatModel, FakeEncoding, ai_message

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _status_error(cls, status_code, body=None):
    return cls(
        f"status {status_code}",
        response=httpx.Response(status_code, request=_REQUEST),
        body=body,
    )


def _gateway(script, **overrides):
    settings = Settings(
        openai_api_key="test-key",
        openai_model="gpt-4o",
        llm_max_retries=3,
        llm_retry_base_delay=1.0,
        llm_retry_max_delay=10.0,
        **overrides,
    )
    sleeps = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    model = FakeChatModel(script)
    gateway = LLMGateway(
        settings,
        chat_model=model,
        token_counter=TokenCounter("gpt-4o", encoding=FakeEncoding()),
        sleep=fake_sleep,
    )
    return gateway, model, sleeps


class TestGenerateCompletion:
    @pytest.mark.asyncio
    async def test_success_reports_usage_and_model(self):
        gateway, model, sleeps = _gateway([ai_message('{"ok": true}', prompt=120, completion=30)])
        result = await gateway.generate_completion("system", "user")

        assert result.content == '{"ok": true}'
        assert result.usage.prompt == 120
        assert result.usage.completion == 30
        assert result.usage.total == 150
        assert result.model == "gpt-4o-2024-08-06"
        assert result.cost["currency"] == "USD"
        assert len(model.calls) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_rate_limit_retried_with_backoff(self):
        gateway, model, sleeps = _gateway(
            [
                _status_error(openai.RateLimitError, 429),
                _status_error(openai.InternalServerError, 503),
                '{"ok": true}',
            ]
        )
        result = await gateway.generate_completion("system", "user")

        assert result.content == '{"ok": true}'
        assert len(model.calls) == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        gateway, model, sleeps = _gateway([_status_error(openai.RateLimitError, 429)])
        with pytest.raises(UpstreamError) as exc_info:
            await gateway.generate_completion("system", "user")

        assert exc_info.value.tag == ErrorTag.LLM_RATE_LIMITED
        assert len(model.calls) == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_authentication_error_is_fatal(self):
        gateway, model, sleeps = _gateway([_status_error(openai.AuthenticationError, 401)])
        with pytest.raises(UpstreamError) as exc_info:
            await gateway.generate_completion("system", "user")

        assert exc_info.value.tag == ErrorTag.LLM_AUTH_FAILED
        assert len(model.calls) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_context_length_is_fatal(self):
        error = _status_error(
            openai.BadRequestError, 400, body={"code": "context_length_exceeded"}
        )
        gateway, model, _ = _gateway([error])
        with pytest.raises(UpstreamError) as exc_info:
            await gateway.generate_completion("system", "user")

        assert exc_info.value.tag == ErrorTag.LLM_CONTEXT_TOO_LONG
        assert len(model.calls) == 1

    @pytest.mark.asyncio
    async def test_connection_error_retried(self):
        gateway, model, _ = _gateway(
            [openai.APIConnectionError(request=_REQUEST), '{"ok": true}']
        )
        result = await gateway.generate_completion("system", "user")
        assert result.content == '{"ok": true}'
        assert len(model.calls) == 2

    @pytest.mark.asyncio
    async def test_empty_content_retried(self):
        gateway, model, _ = _gateway(["", '{"ok": true}'])
        result = await gateway.generate_completion("system", "user")
        assert result.content == '{"ok": true}'
        assert len(model.calls) == 2

    @pytest.mark.asyncio
    async def test_refusal_retried_then_reported(self):
        refusal = ai_message("", additional_kwargs={"refusal": "I can't help with that"})
        gateway, model, _ = _gateway([refusal])
        with pytest.raises(UpstreamError) as exc_info:
            await gateway.generate_completion("system", "user")
        assert exc_info.value.tag == ErrorTag.LLM_REFUSED
        assert len(model.calls) == 3

    @pytest.mark.asyncio
    async def test_per_attempt_timeout_retried(self):
        class SlowOnce:
            def __init__(self):
                self.calls = 0

            async def ainvoke(self, messages):
                self.calls += 1
                if self.calls == 1:
                    await asyncio.sleep(1)
                return ai_message('{"ok": true}')

        gateway, _, _ = _gateway([], llm_invoke_timeout=0.05)
        slow = SlowOnce()
        gateway._chat_model = slow

        result = await gateway.generate_completion("system", "user")
        assert result.content == '{"ok": true}'
        assert slow.calls == 2

    def test_backoff_is_capped(self):
        gateway, _, _ = _gateway(["{}"])
        assert [gateway.backoff_delay(n) for n in range(6)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]


class TestGenerateStructuredOutput:
    @pytest.mark.asyncio
    async def test_fenced_json_parsed(self):
        gateway, _, _ = _gateway(['```json\n{"severity": "low"}\n```'])
        payload, result = await gateway.generate_structured_output("system", "user")
        assert payload == {"severity": "low"}
        assert result.usage.total == 150

    @pytest.mark.asyncio
    async def test_invalid_json_is_invalid_output(self):
        gateway, _, _ = _gateway(["not json at all"])
        with pytest.raises(UpstreamError) as exc_info:
            await gateway.generate_structured_output("system", "user")
        assert exc_info.value.tag == ErrorTag.LLM_INVALID_OUTPUT
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_json_array_is_invalid_output(self):
        gateway, _, _ = _gateway(["[1, 2, 3]"])
        with pytest.raises(UpstreamError) as exc_info:
            await gateway.generate_structured_output("system", "user")
        assert exc_info.value.tag == ErrorTag.LLM_INVALID_OUTPUT


def test_is_configured():
    gateway, _, _ = _gateway(["{}"])
    assert gateway.is_configured
