"""
Server - Logging setup and uvicorn runner.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Optional

import uvicorn

from .app import Stanza
from .config import StanzaConfig


logger = logging.getLogger("stanza.server")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "info") -> None:
    """Install the standard log format on the root logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def load_app(target: str) -> Stanza:
    """
    Import an application from ``module:attribute``.

    The attribute may be a ``Stanza`` instance or a zero-argument factory
    returning one.

    Raises:
        ValueError: If ``target`` is malformed or does not resolve to an app
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected 'module:attribute', got {target!r}")

    module = importlib.import_module(module_name)
    obj: Any = module
    for part in attr.split("."):
        obj = getattr(obj, part)

    if not isinstance(obj, Stanza) and callable(obj):
        obj = obj()

    if not isinstance(obj, Stanza):
        raise ValueError(f"{target!r} did not resolve to a Stanza application")
    return obj


def serve(app: Stanza, config: Optional[StanzaConfig] = None) -> None:
    """
    Run ``app`` under uvicorn.

    Host, port and log level come from ``config`` (or the app's own config).
    """
    config = config or app.config
    configure_logging("debug" if config.debug else config.log_level)

    logger.info("Starting uvicorn server on %s:%s", config.host, config.port)
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level,
    )
