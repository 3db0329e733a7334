# src/termchat/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict
import yaml

_KNOWN_PROVIDERS = ("openai", "anthropic")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    pass


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is int and (isinstance(cur, bool) or not isinstance(cur, int)):
        raise ConfigError(f"'{dotted}' must be an integer")
    if typ is str and not isinstance(cur, str):
        raise ConfigError(f"'{dotted}' must be a string")
    if typ is dict and not isinstance(cur, dict):
        raise ConfigError(f"'{dotted}' must be a mapping")
    return cur


def load_config(path: Path) -> Dict[str, Any]:
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"Config is empty or invalid YAML: {path}")

    # Validate required keys (no defaults here)
    _require(raw, "server.host", str)
    port = _require(raw, "server.port", int)
    providers = _require(raw, "providers", dict)
    _require(raw, "secrets", dict)

    if not 0 < port < 65536:
        raise ConfigError(f"'server.port' out of range: {port}")

    method = raw["secrets"].get("method")
    if not method:
        raise ConfigError("Missing config key: secrets.method")

    # Normalise provider names; unknown names are a config mistake, not a new provider
    normalised: Dict[str, Any] = {}
    for name, pcfg in providers.items():
        key = str(name).lower()
        if key not in _KNOWN_PROVIDERS:
            raise ConfigError(f"Unknown provider '{name}' under providers (expected one of {', '.join(_KNOWN_PROVIDERS)}).")
        if pcfg is not None and not isinstance(pcfg, dict):
            raise ConfigError(f"'providers.{name}' must be a mapping")
        normalised[key] = dict(pcfg or {})
    raw["providers"] = normalised

    logging_cfg = raw.get("logging") or {}
    level = str(logging_cfg.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ConfigError(f"Unknown logging.level '{level}' (expected one of {', '.join(_LOG_LEVELS)}).")
    raw["logging"] = {**logging_cfg, "level": level}

    return raw
