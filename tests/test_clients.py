from __future__ import annotations

import base64
from types import SimpleNamespace
from typing import Any

import pytest
import requests
from ollama._types import ResponseError

from storyengine.core.errors import GenerationError
from storyengine.core.settings import settings
from storyengine.services.image_client import ImageClient
from storyengine.services.ollama_client import OllamaClient


class _FakeSession:
    def __init__(self, response: Any) -> None:
        self.response = response
        self.urls: list[str] = []

    def get(self, url: str, headers: dict, timeout: float) -> Any:
        self.urls.append(url)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_image_url_is_encoded_and_stable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "inline_images", False)
    client = ImageClient(session=_FakeSession(None))
    url = client.reference_for("A rabbit / in the jungle?")
    assert url.startswith(settings.image_base_url + "/A%20rabbit%20%2F%20in%20the%20jungle%3F?")
    assert "nologo=true" in url
    assert f"width={settings.image_width}" in url
    assert url == client.url_for("A rabbit / in the jungle?")


def test_inline_image_becomes_data_uri(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "inline_images", True)
    response = SimpleNamespace(status_code=200, content=b"\x89PNG", headers={"Content-Type": "image/png"})
    client = ImageClient(session=_FakeSession(response))
    ref = client.reference_for("a castle")
    assert ref == "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode("ascii")


@pytest.mark.parametrize(
    "response",
    [
        requests.ConnectionError("offline"),
        SimpleNamespace(status_code=503, content=b"", headers={}),
    ],
)
def test_inline_image_failures_raise(monkeypatch: pytest.MonkeyPatch, response: Any) -> None:
    monkeypatch.setattr(settings, "inline_images", True)
    client = ImageClient(session=_FakeSession(response))
    with pytest.raises(GenerationError):
        client.reference_for("a castle")


def test_blank_image_prompt_is_rejected() -> None:
    with pytest.raises(GenerationError):
        ImageClient(session=_FakeSession(None)).reference_for("   ")


class _FakeOllama:
    def __init__(self, outcomes: list[Any]) -> None:
        self.outcomes = outcomes
        self.generate_calls: list[dict] = []
        self.pulled: list[str] = []

    def generate(self, **kwargs: Any) -> Any:
        self.generate_calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(response=outcome)

    def pull(self, model: str) -> None:
        self.pulled.append(model)

    def list(self) -> Any:
        raise ConnectionError("no server")


def _client(fake: _FakeOllama) -> OllamaClient:
    client = OllamaClient(host="http://localhost:11434", model="tiny")
    client._client = fake
    return client


def test_generate_requests_json_and_strips() -> None:
    fake = _FakeOllama(['  {"story": "x"}  '])
    out = _client(fake).generate("prompt", temperature=0.3, max_tokens=50)
    assert out == '{"story": "x"}'
    call = fake.generate_calls[0]
    assert call["format"] == "json"
    assert call["model"] == "tiny"
    assert call["options"] == {"temperature": 0.3, "num_predict": 50}


def test_generate_pulls_missing_model(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "auto_pull", True)
    fake = _FakeOllama([ResponseError("model not found", 404), "{}"])
    assert _client(fake).generate("prompt") == "{}"
    assert fake.pulled == ["tiny"]


def test_generate_makes_single_attempt_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "max_attempts", 1)
    fake = _FakeOllama([ResponseError("overloaded", 500), "{}"])
    with pytest.raises(ResponseError):
        _client(fake).generate("prompt")
    assert len(fake.generate_calls) == 1


def test_is_available_false_when_unreachable() -> None:
    assert _client(_FakeOllama([])).is_available() is False
