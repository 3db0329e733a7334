from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from dotenv import load_dotenv

from .config_loader import load_config
from .core.models import DEFAULT_PROVIDER
from .core.relay import ProviderSlot, StreamRelay
from .log import configure_logging
from .providers.registry import ProviderRegistry
from .secrets.sources import SecretsResolver

logger = logging.getLogger(__name__)


def build_relay(
    cfg: Dict[str, Any],
    resolver: SecretsResolver,
    warnings: Optional[List[Dict[str, Any]]] = None,
) -> StreamRelay:
    """
    Build one slot per registered provider. A provider without a credential
    gets an empty slot: it is reported as unavailable, never dropped.
    """
    ProviderRegistry.ensure_imports()  # make sure built-ins register

    providers_cfg = cfg.get("providers") or {}
    slots: List[ProviderSlot] = []
    for name in ProviderRegistry.names():
        Adapter = ProviderRegistry.get(name)
        api_key = resolver.secret(name, "api_key")
        if not api_key:
            logger.warning("%s API key not configured; provider '%s' is unavailable", Adapter.display_name, name)
            if warnings is not None:
                warnings.append({
                    "type": "provider_unavailable",
                    "provider": name,
                    "message": f"{Adapter.display_name} API key not configured",
                })
            slots.append(ProviderSlot(name=name, display_name=Adapter.display_name))
            continue
        adapter = Adapter.create(provider_cfg=providers_cfg.get(name, {}), api_key=api_key)
        slots.append(ProviderSlot(name=name, display_name=Adapter.display_name, adapter=adapter))

    return StreamRelay(slots, default_provider=DEFAULT_PROVIDER)


def build_app(config_path: Path) -> Dict[str, Any]:
    """
    Composition root: load .env and YAML, configure logging, resolve secrets
    and build the relay.
    Returns: dict with cfg, paths, relay, warnings.
    """
    load_dotenv()
    config_path = Path(config_path)
    cfg = load_config(config_path)
    configure_logging(cfg["logging"]["level"])

    secrets_cfg = cfg["secrets"]
    resolver = SecretsResolver(method=secrets_cfg["method"], mapping=secrets_cfg.get("mapping") or {})

    warnings: List[Dict[str, Any]] = []
    relay = build_relay(cfg, resolver, warnings)

    return {
        "cfg": cfg,
        "paths": {"config_path": config_path, "config_dir": config_path.resolve().parent},
        "relay": relay,
        "warnings": warnings,
    }
