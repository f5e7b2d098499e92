import httpx
import openai
import pytest

from conftest import FakeOpenAI, RecordingSleep, completion
from prompt_enhancement.schemas import VisualAttributes
from providers.errors import (
    EmptyResponseError,
    ParseError,
    ProviderAuthError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderTransientError,
    error_for_status,
    map_openai_error,
)
from providers.llm_client import (
    LLMClient,
    LLMOptions,
    build_image_message,
    parse_json_reply,
    validate_json_reply,
)
from providers.settings import ProviderSettings

SETTINGS = ProviderSettings(api_key="sk-test-0123456789")


class TestParseJsonReply:
    def test_plain_json(self):
        reply = parse_json_reply('{"subject": "a lighthouse"}')
        assert reply.ok
        assert reply.value == {"subject": "a lighthouse"}

    def test_fenced_json(self):
        reply = parse_json_reply('Here you go:\n```json\n{"subject": "a lighthouse"}\n```\nDone')
        assert reply.ok
        assert reply.value["subject"] == "a lighthouse"

    def test_prose_is_rejected(self):
        reply = parse_json_reply("I cannot help with that.")
        assert not reply.ok
        assert reply.error

    def test_shape_mismatch_is_a_parse_error(self):
        with pytest.raises(ParseError) as info:
            validate_json_reply('{"composition": {}}', VisualAttributes)
        assert "VisualAttributes" in str(info.value)


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status,expected",
        [
            (401, ProviderAuthError),
            (403, ProviderAuthError),
            (429, ProviderRateLimitError),
            (503, ProviderTransientError),
            (400, ProviderRequestError),
        ],
    )
    def test_status_codes(self, status, expected):
        assert isinstance(error_for_status(status, "boom"), expected)

    def test_sdk_status_error(self):
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
        response = httpx.Response(429, request=request)
        exc = openai.RateLimitError("slow down", response=response, body=None)
        mapped = map_openai_error(exc)
        assert isinstance(mapped, ProviderRateLimitError)
        assert mapped.retryable


def test_image_message_builds_data_url():
    message = build_image_message("critique this", "QUJD", "image/jpeg")
    assert message["content"][1]["image_url"]["url"] == "data:image/jpeg;base64,QUJD"


async def test_complete_sends_sampling_options():
    fake = FakeOpenAI([completion(content="hello")])
    client = LLMClient(SETTINGS, LLMOptions(model="test-llm"), client=fake)
    assert await client.complete([{"role": "user", "content": "hi"}]) == "hello"
    sent = fake.kwargs[0]
    assert sent["model"] == "test-llm"
    assert sent["temperature"] == 0.7
    assert sent["extra_body"] == {"top_k": 40}


async def test_complete_retries_transient_failures():
    sleep = RecordingSleep()
    fake = FakeOpenAI([
        ProviderTransientError("upstream 503"),
        completion(content=None),
        completion(content='{"subject": "a lighthouse"}'),
    ])
    client = LLMClient(SETTINGS, LLMOptions(max_retries=2), client=fake, sleep=sleep)
    attributes = await client.complete_json([], VisualAttributes)
    assert attributes.subject == "a lighthouse"
    assert sleep.delays == [1.0, 2.0]


async def test_empty_reply_surfaces_after_retries():
    fake = FakeOpenAI([completion(content=None)])
    client = LLMClient(SETTINGS, LLMOptions(max_retries=0), client=fake)
    with pytest.raises(EmptyResponseError):
        await client.complete([])


async def test_auth_errors_are_not_retried():
    sleep = RecordingSleep()
    fake = FakeOpenAI([ProviderAuthError("bad key"), completion(content="unused")])
    client = LLMClient(SETTINGS, client=fake, sleep=sleep)
    with pytest.raises(ProviderAuthError):
        await client.complete([])
    assert sleep.delays == []


async def test_missing_api_key_fails_on_first_call():
    client = LLMClient(ProviderSettings(api_key=None))
    with pytest.raises(ProviderAuthError):
        await client.complete([])
