"""translate entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Sequence

from bedrock_endpoint.application.ports.text_generation_port import TextGenerationPort
from bedrock_endpoint.application.services.translation_service import (
    TranslationRequest,
    TranslationService,
)
from bedrock_endpoint.config.settings import Settings, load_settings
from bedrock_endpoint.infrastructure.bedrock.http_client import (
    BedrockEndpointClient,
    BedrockEndpointConfig,
    BedrockHttpTransportPort,
)
from bedrock_endpoint.infrastructure.bedrock.signing import (
    RequestSignerPort,
    build_request_signer,
)
from bedrock_endpoint.infrastructure.logging import configure_logging

logger = logging.getLogger(__name__)


def build_endpoint_config(settings: Settings) -> BedrockEndpointConfig:
    """Map environment settings to an explicit endpoint adapter configuration."""

    endpoint_url = settings.bedrock_endpoint_url
    return BedrockEndpointConfig(
        region=settings.bedrock_region,
        model_id=settings.bedrock_model_id,
        role_arn=settings.bedrock_role_arn,
        stream=settings.bedrock_stream,
        model_kwargs=dict(settings.bedrock_model_kwargs),
        timeout_seconds=settings.bedrock_timeout_seconds,
        endpoint_url=str(endpoint_url) if endpoint_url is not None else None,
    )


def build_endpoint_client(
    *,
    settings: Settings,
    signer: RequestSignerPort | None = None,
    transport: BedrockHttpTransportPort | None = None,
) -> BedrockEndpointClient:
    """Build the Bedrock endpoint adapter, signing with the configured identity."""

    config = build_endpoint_config(settings)
    request_signer = signer or build_request_signer(
        region=config.region,
        role_arn=config.role_arn,
    )
    return BedrockEndpointClient(config=config, signer=request_signer, transport=transport)


async def run_translation(
    *,
    llm: TextGenerationPort,
    request: TranslationRequest,
) -> str:
    """Translate one segment with the supplied generation backend."""

    return await TranslationService(llm=llm).translate(request)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="bedrock-translate",
        description="Translate a blog segment through a Bedrock model endpoint.",
    )
    parser.add_argument("content", help="text segment to translate")
    parser.add_argument("--source-language", default="en-US")
    parser.add_argument("--target-language", default="fr-FR")
    return parser.parse_args(argv)


async def _run(argv: Sequence[str] | None) -> str:
    args = _parse_args(argv)
    settings = load_settings()
    configure_logging(level=settings.log_level)
    logger.info(
        "translate_starting model_id=%s region=%s stream=%s",
        settings.bedrock_model_id,
        settings.bedrock_region,
        settings.bedrock_stream,
    )

    client = build_endpoint_client(settings=settings)
    return await run_translation(
        llm=client,
        request=TranslationRequest(
            content=args.content,
            source_language=args.source_language,
            target_language=args.target_language,
        ),
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Translate the segment given on the command line and print the result."""

    print(asyncio.run(_run(argv)))


if __name__ == "__main__":
    main()
