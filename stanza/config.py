"""
Config system - Typed configuration with layered sources.

Merge order (later overrides earlier):
1. Dataclass defaults, or a base config
2. ``.env`` file (python-dotenv)
3. ``STANZA_*`` environment variables
4. Explicit overrides
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union, get_args, get_type_hints

from dotenv import dotenv_values

from .faults import ConfigError


ENV_PREFIX = "STANZA_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class StanzaConfig:
    """
    Application configuration.

    Attributes:
        host: Interface to bind
        port: Port to bind
        debug: Debug mode (verbose logging)
        log_level: Logging level name
        templates_dir: Directory holding view templates (None = no renderer)
        template_suffix: Suffix appended to view ids
        session_cookie: Name of the session cookie
        session_max_age: Max-Age of issued session cookies (None = browser session)
        max_sessions: Bound on live sessions (None = unbounded)
        max_body_size: Largest accepted request body in bytes
        handler_timeout: Per-request deadline in seconds (None = no deadline)
    """

    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False
    log_level: str = "info"
    templates_dir: Optional[str] = None
    template_suffix: str = ".html"
    session_cookie: str = "session_id"
    session_max_age: Optional[int] = None
    max_sessions: Optional[int] = None
    max_body_size: int = 1_048_576
    handler_timeout: Optional[float] = 30.0

    @classmethod
    def load(
        cls,
        env_file: Optional[Union[str, Path]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
        base: Optional["StanzaConfig"] = None,
    ) -> "StanzaConfig":
        """
        Build a config from all sources.

        Args:
            env_file: Path to a ``.env`` file (skipped if missing)
            overrides: Explicit values, highest precedence
            environ: Environment mapping (defaults to ``os.environ``)
            base: Config whose values replace the dataclass defaults

        Raises:
            ConfigError: If a value cannot be coerced or a key is unknown
        """
        known = {f.name for f in fields(cls)}
        raw: Dict[str, Any] = {}

        if env_file is not None and Path(env_file).exists():
            raw.update(_strip_prefix(dotenv_values(env_file), known))

        raw.update(_strip_prefix(os.environ if environ is None else environ, known))

        if overrides:
            unknown = set(overrides) - known
            if unknown:
                raise ConfigError(
                    f"Unknown config keys: {', '.join(sorted(unknown))}",
                    metadata={"keys": sorted(unknown)},
                )
            raw.update(overrides)

        hints = get_type_hints(cls)
        values = base.to_dict() if base is not None else {}
        values.update((name, _coerce(name, value, hints[name])) for name, value in raw.items())
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _strip_prefix(source: Mapping[str, Optional[str]], known: set) -> Dict[str, Any]:
    result = {}
    for key, value in source.items():
        if not key.startswith(ENV_PREFIX) or value is None:
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in known:
            result[name] = value
    return result


def _coerce(name: str, value: Any, hint: Any) -> Any:
    """Coerce a raw value (usually a string) to the field's type."""
    args = get_args(hint)
    optional = type(None) in args
    target = next((a for a in args if a is not type(None)), hint)

    if value is None:
        if optional:
            return None
        raise ConfigError(f"Config key {name!r} must not be empty", metadata={"key": name})

    if not isinstance(value, str):
        if target is float and isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, target):
            return value
        raise ConfigError(
            f"Config key {name!r} expects {target.__name__}, got {type(value).__name__}",
            metadata={"key": name},
        )

    text = value.strip()
    if optional and text.lower() in {"", "none", "null"}:
        return None

    try:
        if target is bool:
            lowered = text.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(text)
        if target is int:
            return int(text)
        if target is float:
            return float(text)
    except ValueError as e:
        raise ConfigError(
            f"Config key {name!r} expects {target.__name__}, got {value!r}",
            metadata={"key": name},
        ) from e

    return text
