"""Runtime configuration read from the environment."""

from __future__ import annotations

import logging
import os


def _getenv_int(name: str, default: int | None = None) -> int | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


HOST = os.getenv("MESHLINK_HOST", "0.0.0.0")
PORT = _getenv_int("MESHLINK_PORT", 8080)
LOG_LEVEL = os.getenv("MESHLINK_LOG_LEVEL", "INFO").upper()
# Applied to upserted connections that do not carry their own keepalive.
DEFAULT_KEEPALIVE = _getenv_int("MESHLINK_DEFAULT_KEEPALIVE")


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or LOG_LEVEL),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = ["HOST", "PORT", "LOG_LEVEL", "DEFAULT_KEEPALIVE", "configure_logging"]
