from __future__ import annotations

import pytest
from botocore.credentials import Credentials

import apps.translate.main as translate_main
from apps.translate.main import (
    build_endpoint_client,
    build_endpoint_config,
    main,
    run_translation,
)
from bedrock_endpoint.application.services.translation_service import TranslationRequest
from bedrock_endpoint.config.settings import Settings
from bedrock_endpoint.infrastructure.bedrock.http_client import (
    BedrockEndpointClient,
    BedrockHttpResponse,
)
from bedrock_endpoint.infrastructure.bedrock.signing import SigV4RequestSigner


def _settings(monkeypatch: pytest.MonkeyPatch, **env: str) -> Settings:
    for key in (
        "BEDROCK_REGION",
        "BEDROCK_MODEL_ID",
        "BEDROCK_ROLE_ARN",
        "BEDROCK_STREAM",
        "BEDROCK_TIMEOUT_SECONDS",
        "BEDROCK_ENDPOINT_URL",
        "BEDROCK_MODEL_KWARGS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return Settings(_env_file=None)


class _StaticLlm:
    def __init__(self, response_text: str) -> None:
        self._response_text = response_text
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self._response_text


class _SingleResponseTransport:
    def __init__(self, body: bytes) -> None:
        self._body = body
        self.urls: list[str] = []

    async def request(self, *, method: str, url: str, **_: object) -> BedrockHttpResponse:
        self.urls.append(url)
        return BedrockHttpResponse(status_code=200, body_bytes=self._body)

    async def stream(self, **_: object) -> object:  # pragma: no cover - not used here
        raise NotImplementedError


def test_build_endpoint_config_maps_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    settings = _settings(
        monkeypatch,
        BEDROCK_REGION="us-west-2",
        BEDROCK_MODEL_ID="anthropic.claude-instant-v1",
        BEDROCK_ROLE_ARN="arn:aws:iam::123456789012:role/BedrockInvoke",
        BEDROCK_STREAM="1",
        BEDROCK_MODEL_KWARGS='{"max_tokens_to_sample": 300}',
        BEDROCK_ENDPOINT_URL="https://bedrock.internal.example.com",
    )

    config = build_endpoint_config(settings)

    assert config.region == "us-west-2"
    assert config.model_id == "anthropic.claude-instant-v1"
    assert config.role_arn == "arn:aws:iam::123456789012:role/BedrockInvoke"
    assert config.stream is True
    assert dict(config.model_kwargs) == {"max_tokens_to_sample": 300}
    assert config.invoke_url(stream=True) == (
        "https://bedrock.internal.example.com/model/anthropic.claude-instant-v1/"
        "invoke-with-response-stream"
    )


def test_build_endpoint_client_builds_signer_from_config(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    settings = _settings(
        monkeypatch,
        BEDROCK_ROLE_ARN="arn:aws:iam::123456789012:role/BedrockInvoke",
    )
    signer_calls: list[dict[str, object]] = []

    def _fake_build_request_signer(**kwargs: object) -> SigV4RequestSigner:
        signer_calls.append(kwargs)
        return SigV4RequestSigner(region="us-east-1", credentials=Credentials("AKID", "secret"))

    monkeypatch.setattr(translate_main, "build_request_signer", _fake_build_request_signer)

    client = build_endpoint_client(settings=settings)

    assert isinstance(client, BedrockEndpointClient)
    assert client.model_name == "anthropic.claude-v1"
    assert signer_calls == [
        {"region": "us-east-1", "role_arn": "arn:aws:iam::123456789012:role/BedrockInvoke"}
    ]


@pytest.mark.asyncio
async def test_run_translation_through_endpoint_client(monkeypatch: pytest.MonkeyPatch) -> None:
    transport = _SingleResponseTransport(body=b'{"completion":" Les fonctions Lambda"}')
    client = build_endpoint_client(
        settings=_settings(monkeypatch),
        signer=SigV4RequestSigner(region="us-east-1", credentials=Credentials("AKID", "secret")),
        transport=transport,  # type: ignore[arg-type]
    )

    translated = await run_translation(
        llm=client,
        request=TranslationRequest(content="Lambda function are serverless"),
    )

    assert translated == " Les fonctions Lambda"
    assert transport.urls == [
        "https://bedrock.us-east-1.amazonaws.com/model/anthropic.claude-v1/invoke"
    ]


def test_main_prints_translation(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    settings = _settings(monkeypatch, LOG_LEVEL="WARNING")
    llm = _StaticLlm(response_text="Les fonctions Lambda sont sans serveur")
    monkeypatch.setattr(translate_main, "load_settings", lambda: settings)
    monkeypatch.setattr(translate_main, "build_endpoint_client", lambda *, settings: llm)

    main(["Lambda function are serverless", "--target-language", "es-ES"])

    assert capsys.readouterr().out.strip() == "Les fonctions Lambda sont sans serveur"
    assert "from en-US to es-ES" in llm.prompts[0]
