"""SigV4 request signing for Bedrock HTTP calls, backed by botocore."""

from __future__ import annotations

from typing import Any, Protocol

import botocore.session
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import (
    AssumeRoleCredentialFetcher,
    DeferredRefreshableCredentials,
)

BEDROCK_SERVICE_NAME = "bedrock"
DEFAULT_ROLE_SESSION_NAME = "bedrock-endpoint"


class RequestSignerPort(Protocol):
    """Protocol for signing one outbound HTTP request."""

    def sign(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
    ) -> dict[str, str]:
        """Return the full header set to send, including signature headers."""


class BedrockSigningError(RuntimeError):
    """Raised when no AWS credentials are available to sign a request."""


class SigV4RequestSigner:
    """Sign requests with AWS Signature Version 4 for one region and service."""

    def __init__(
        self,
        *,
        region: str,
        credentials: Any,
        service: str = BEDROCK_SERVICE_NAME,
    ) -> None:
        if credentials is None:
            raise BedrockSigningError("no AWS credentials available for request signing")
        self._region = region
        self._service = service
        self._credentials = credentials

    @property
    def region(self) -> str:
        return self._region

    @property
    def service(self) -> str:
        return self._service

    def sign(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
    ) -> dict[str, str]:
        request = AWSRequest(method=method, url=url, data=body, headers=dict(headers))
        SigV4Auth(self._credentials, self._service, self._region).add_auth(request)
        return dict(request.headers.items())


def build_request_signer(
    *,
    region: str,
    role_arn: str | None = None,
    role_session_name: str = DEFAULT_ROLE_SESSION_NAME,
    session: botocore.session.Session | None = None,
) -> SigV4RequestSigner:
    """Build a signer from the default credential chain, optionally assuming a role."""

    botocore_session = session or botocore.session.get_session()
    source_credentials = botocore_session.get_credentials()
    if source_credentials is None:
        raise BedrockSigningError("no AWS credentials found in the default credential chain")

    if role_arn is None:
        return SigV4RequestSigner(region=region, credentials=source_credentials)

    fetcher = AssumeRoleCredentialFetcher(
        client_creator=botocore_session.create_client,
        source_credentials=source_credentials,
        role_arn=role_arn,
        extra_args={"RoleSessionName": role_session_name},
    )
    credentials = DeferredRefreshableCredentials(
        refresh_using=fetcher.fetch_credentials,
        method="assume-role",
    )
    return SigV4RequestSigner(region=region, credentials=credentials)
