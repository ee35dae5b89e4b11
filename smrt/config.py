"""
Process configuration.

Values come from the environment (a local ``.env`` file is loaded first when
reading the real process environment). Empty strings count as unset. Both
required values must be present when the process starts; a missing one raises
ConfigurationError instead of failing later on first use.
"""

from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from smrt.errors import ConfigurationError

REQUIRED_VARS = ("DATABASE_URL", "NEXT_PUBLIC_BASE_URL")

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseModel):
    """Validated runtime settings."""

    model_config = ConfigDict(frozen=True)

    database_url: str = Field(..., min_length=1)
    base_url: str = Field(..., min_length=1)
    database_echo: bool = False
    database_connect_timeout: int = Field(10, gt=0)


def _read(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


# PUBLIC_INTERFACE
def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        environ: mapping to read from. Defaults to os.environ after loading .env.

    Raises:
        ConfigurationError: a required variable is missing or a value is invalid.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    missing = [name for name in REQUIRED_VARS if _read(environ, name) is None]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    values = {
        "database_url": _read(environ, "DATABASE_URL"),
        "base_url": _read(environ, "NEXT_PUBLIC_BASE_URL"),
    }
    echo = _read(environ, "DATABASE_ECHO")
    if echo is not None:
        values["database_echo"] = echo
    timeout = _read(environ, "DATABASE_CONNECT_TIMEOUT")
    if timeout is not None:
        values["database_connect_timeout"] = timeout

    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def configure_logging(level: int | str = logging.INFO) -> None:
    """Install a root handler for CLI and server entry points."""
    logging.basicConfig(level=level, format=_LOG_FORMAT)
