"""
gigalink configuration.

Sources are layered, later ones winning:

    built-in defaults
    YAML file (``gigalink.yaml`` or ``~/.config/gigalink/config.yaml``)
    named profile from that file
    ``GIGALINK_*`` environment variables
    CLI flags
    session overrides set through ``GigalinkConfig.set_override``

The authorization key itself never lives in the file; ``gigachat.credentials_env``
names the environment variable that holds it.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from gigalink.llm.providers.gigachat_http import (
    DEFAULT_AUTH_URL,
    DEFAULT_BASE_URL,
    DEFAULT_SCOPE,
)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

@dataclass
class GigaChatConfig:
    base_url: str = DEFAULT_BASE_URL
    auth_url: str = DEFAULT_AUTH_URL
    credentials_env: str = "GIGACHAT_CREDENTIALS"
    scope: str = DEFAULT_SCOPE
    chat_model: str = "GigaChat"
    completion_model: str = "GigaChat"
    embedding_model: str = "GigaChat"
    temperature: float = 0.0
    timeout_seconds: int = 120
    max_retries: int = 2
    verify_ssl: bool = True
    # None follows the log level: error bodies are logged only at DEBUG.
    log_errors: bool | None = None
    default_options: dict = field(default_factory=dict)

    def read_credentials(self) -> str:
        """Authorization key from the configured environment variable, or ``""``."""
        return os.environ.get(self.credentials_env, "")


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    format: str = "%(message)s"


@dataclass
class GigalinkConfig:
    gigachat: GigaChatConfig = field(default_factory=GigaChatConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    _overrides: dict[str, Any] = field(default_factory=dict, repr=False)

    def set_override(self, key: str, value: Any) -> None:
        """Override one setting for this session, e.g. ``"gigachat.chat_model"``."""
        self._overrides[key] = value
        _assign(self, key, value)

    def get_override(self, key: str) -> Any | None:
        return self._overrides.get(key)

    def to_dict(self) -> dict:
        data = asdict(self)
        del data["_overrides"]
        return data


# ---------------------------------------------------------------------------
# Environment variables
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "GIGALINK_GIGACHAT_BASE_URL":         ("gigachat.base_url", str),
    "GIGALINK_GIGACHAT_AUTH_URL":         ("gigachat.auth_url", str),
    "GIGALINK_GIGACHAT_CREDENTIALS_ENV":  ("gigachat.credentials_env", str),
    "GIGALINK_GIGACHAT_SCOPE":            ("gigachat.scope", str),
    "GIGALINK_GIGACHAT_MODEL":            ("gigachat.chat_model", str),
    "GIGALINK_GIGACHAT_COMPLETION_MODEL": ("gigachat.completion_model", str),
    "GIGALINK_GIGACHAT_EMBEDDING_MODEL":  ("gigachat.embedding_model", str),
    "GIGALINK_GIGACHAT_TEMPERATURE":      ("gigachat.temperature", float),
    "GIGALINK_GIGACHAT_TIMEOUT":          ("gigachat.timeout_seconds", int),
    "GIGALINK_GIGACHAT_MAX_RETRIES":      ("gigachat.max_retries", int),
    "GIGALINK_GIGACHAT_VERIFY_SSL":       ("gigachat.verify_ssl", bool),
    "GIGALINK_GIGACHAT_LOG_ERRORS":       ("gigachat.log_errors", bool),
    "GIGALINK_LOG_LEVEL":                 ("logging.level", str),
}

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _parse_env(text: str, kind: type) -> Any:
    if kind is bool:
        return text.strip().lower() in _TRUTHY
    return kind(text)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _assign(cfg: Any, key: str, value: Any) -> None:
    section, _, name = key.rpartition(".")
    target = cfg
    if section:
        for attr in section.split("."):
            target = getattr(target, attr)
    setattr(target, name, value)


def _overlay(base: Mapping[str, Any], top: Mapping[str, Any]) -> dict[str, Any]:
    """Merge *top* over *base*; nested mappings merge key by key."""
    result = dict(base)
    for key, value in top.items():
        below = result.get(key)
        if isinstance(below, Mapping) and isinstance(value, Mapping):
            result[key] = _overlay(below, value)
        else:
            result[key] = value
    return result


def _section(cls: type, raw: Any) -> Any:
    # Unknown keys are ignored so old config files keep loading.
    if not isinstance(raw, Mapping):
        return cls()
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in raw.items() if k in known})


def _read_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> GigalinkConfig:
    """
    Load the effective configuration.

    A missing *config_path* is not an error; defaults apply.  *profile*
    selects an entry under ``profiles:`` in the file and overlays it on the
    top-level sections.  *cli_overrides* maps dotted keys to values.
    """
    raw: dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path).expanduser()
        if path.is_file():
            raw = _read_yaml(path)

    profiles = raw.get("profiles") or {}
    if profile:
        raw = _overlay(raw, profiles.get(profile) or {})

    cfg = GigalinkConfig(
        gigachat=_section(GigaChatConfig, raw.get("gigachat")),
        logging=_section(LoggingConfig, raw.get("logging")),
        profiles=profiles,
    )

    for name, (key, kind) in _ENV_MAP.items():
        text = os.environ.get(name)
        if text is not None:
            _assign(cfg, key, _parse_env(text, kind))

    for key, value in (cli_overrides or {}).items():
        _assign(cfg, key, value)

    return cfg
