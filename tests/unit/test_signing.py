from __future__ import annotations

from datetime import UTC, datetime

import pytest
from botocore.credentials import Credentials

from bedrock_endpoint.infrastructure.bedrock.signing import (
    BedrockSigningError,
    SigV4RequestSigner,
    build_request_signer,
)

_URL = "https://bedrock.us-east-1.amazonaws.com/model/anthropic.claude-v1/invoke"


class _FakeStsClient:
    def __init__(self) -> None:
        self.assume_role_calls: list[dict[str, object]] = []

    def assume_role(self, **kwargs: object) -> dict[str, object]:
        self.assume_role_calls.append(kwargs)
        return {
            "Credentials": {
                "AccessKeyId": "ASIAROLEEXAMPLE",
                "SecretAccessKey": "role-secret",
                "SessionToken": "role-session-token",
                "Expiration": datetime(2099, 1, 1, tzinfo=UTC),
            },
            "AssumedRoleUser": {
                "AssumedRoleId": "AROAEXAMPLE:bedrock-endpoint",
                "Arn": "arn:aws:sts::123456789012:assumed-role/BedrockInvokeRole/bedrock-endpoint",
            },
        }


class _FakeBotocoreSession:
    def __init__(self, credentials: Credentials | None) -> None:
        self._credentials = credentials
        self.sts = _FakeStsClient()
        self.created_clients: list[tuple[str, dict[str, object]]] = []

    def get_credentials(self) -> Credentials | None:
        return self._credentials

    def create_client(self, service_name: str, **kwargs: object) -> _FakeStsClient:
        self.created_clients.append((service_name, kwargs))
        return self.sts


def test_sign_adds_sigv4_headers_for_bedrock_service() -> None:
    signer = SigV4RequestSigner(
        region="us-east-1",
        credentials=Credentials("AKIDEXAMPLE", "secret-key", "session-token"),
    )

    headers = signer.sign(
        method="POST",
        url=_URL,
        headers={"accept": "application/json", "content-type": "application/json"},
        body=b'{"prompt":"hi","max_tokens_to_sample":200}',
    )

    authorization = headers["Authorization"]
    assert authorization.startswith("AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/")
    assert "/us-east-1/bedrock/aws4_request" in authorization
    assert "Signature=" in authorization
    assert headers["X-Amz-Security-Token"] == "session-token"
    assert "X-Amz-Date" in headers
    assert headers["accept"] == "application/json"
    assert headers["content-type"] == "application/json"
    assert signer.service == "bedrock"
    assert signer.region == "us-east-1"


def test_sign_does_not_mutate_input_headers() -> None:
    signer = SigV4RequestSigner(region="us-east-1", credentials=Credentials("AKID", "secret"))
    original = {"accept": "*/*"}

    signer.sign(method="POST", url=_URL, headers=original, body=b"{}")

    assert original == {"accept": "*/*"}


def test_signature_changes_with_body() -> None:
    signer = SigV4RequestSigner(region="us-east-1", credentials=Credentials("AKID", "secret"))

    first = signer.sign(method="POST", url=_URL, headers={}, body=b'{"prompt":"a"}')
    second = signer.sign(method="POST", url=_URL, headers={}, body=b'{"prompt":"b"}')

    assert first["Authorization"].split("Signature=")[1] != (
        second["Authorization"].split("Signature=")[1]
    )


def test_signer_requires_credentials() -> None:
    with pytest.raises(BedrockSigningError):
        SigV4RequestSigner(region="us-east-1", credentials=None)


def test_build_request_signer_fails_without_default_credentials() -> None:
    session = _FakeBotocoreSession(credentials=None)

    with pytest.raises(BedrockSigningError, match="default credential chain"):
        build_request_signer(region="us-east-1", session=session)  # type: ignore[arg-type]


def test_build_request_signer_uses_default_credentials_without_role() -> None:
    session = _FakeBotocoreSession(credentials=Credentials("AKIDDEFAULT", "secret"))

    signer = build_request_signer(region="us-east-1", session=session)  # type: ignore[arg-type]
    headers = signer.sign(method="POST", url=_URL, headers={}, body=b"{}")

    assert headers["Authorization"].startswith("AWS4-HMAC-SHA256 Credential=AKIDDEFAULT/")
    assert session.created_clients == []


def test_build_request_signer_assumes_role_on_first_signature() -> None:
    session = _FakeBotocoreSession(credentials=Credentials("AKIDSOURCE", "source-secret"))
    role_arn = "arn:aws:iam::123456789012:role/BedrockInvokeRole"

    signer = build_request_signer(
        region="us-east-1",
        role_arn=role_arn,
        session=session,  # type: ignore[arg-type]
    )
    assert session.sts.assume_role_calls == []

    headers = signer.sign(method="POST", url=_URL, headers={}, body=b"{}")

    assert headers["Authorization"].startswith("AWS4-HMAC-SHA256 Credential=ASIAROLEEXAMPLE/")
    assert headers["X-Amz-Security-Token"] == "role-session-token"
    assert session.sts.assume_role_calls == [
        {"RoleArn": role_arn, "RoleSessionName": "bedrock-endpoint"}
    ]
    assert session.created_clients[0][0] == "sts"
    assert session.created_clients[0][1]["aws_access_key_id"] == "AKIDSOURCE"
