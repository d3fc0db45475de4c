"""Process logging setup for command-line entrypoints."""

from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_LIBRARY_LOGGERS = ("botocore", "urllib3")


def configure_logging(*, level: str) -> int:
    """Configure root logging and return the resolved numeric level.

    AWS client library loggers are held at WARNING unless DEBUG is requested.
    """

    normalized_level = level.strip().upper() if level.strip() else "INFO"
    resolved_level = getattr(logging, normalized_level, logging.INFO)
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO

    logging.basicConfig(level=resolved_level, format=_LOG_FORMAT)
    library_level = resolved_level if resolved_level <= logging.DEBUG else logging.WARNING
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
    return resolved_level
