import pytest

from llm.llm_client import LLMClient, extract_json, make_provider
from llm.providers.mock_provider import MockProvider


def test_llm_extra_text_around_json(fake_provider_factory):
    provider = fake_provider_factory(
        'Sure! Here is the plan: {"subtasks":[{"title":"Call mom","duration":30}]} Good luck.'
    )
    client = LLMClient(provider=provider)
    out = client.complete_json("Call mom")
    assert out["subtasks"][0]["title"] == "Call mom"


def test_llm_invalid_output_raises(fake_provider_factory):
    client = LLMClient(provider=fake_provider_factory("INVALID OUTPUT"))
    with pytest.raises(ValueError):
        client.complete_json("Anything")


def test_extract_json_rejects_broken_object():
    with pytest.raises(ValueError):
        extract_json('{"subtasks": [}')


def test_make_provider_mock():
    assert isinstance(make_provider("mock"), MockProvider)


def test_make_provider_unknown():
    with pytest.raises(ValueError):
        make_provider("nope")


def test_anthropic_provider_requires_key(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(RuntimeError):
        make_provider("anthropic")


def test_anthropic_provider_joins_text_blocks(monkeypatch):
    from llm.providers import anthropic_provider

    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    seen = {}

    class FakeResponse:
        def raise_for_status(self):
            return None

        def json(self):
            return {"content": [{"type": "text", "text": '{"subtasks": '}, {"type": "text", "text": "[]}"}]}

    class FakeClient:
        def __init__(self, timeout):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def post(self, url, headers, json):
            seen["url"] = url
            seen["headers"] = headers
            seen["payload"] = json
            return FakeResponse()

    monkeypatch.setattr(anthropic_provider.httpx, "Client", FakeClient)

    provider = anthropic_provider.AnthropicProvider()
    out = provider.generate(system="sys", user="hello")

    assert out == '{"subtasks": []}'
    assert seen["url"].endswith("/v1/messages")
    assert seen["headers"]["x-api-key"] == "test-key"
    assert seen["payload"]["messages"] == [{"role": "user", "content": "hello"}]
    assert seen["payload"]["system"] == "sys"
