# src/termchat/secrets/sources.py

from __future__ import annotations
import logging
import os
from typing import Dict, Iterable, List, Optional, Protocol, Union

import keyring as _keyring

logger = logging.getLogger(__name__)


class SecretSource(Protocol):
    def get(self, service: str) -> Optional[str]: ...


class EnvSource:
    def get(self, service: str) -> Optional[str]:
        # 1) exact env var name, 2) derived names
        for key in (service, f"{service.upper()}_API_KEY", service.upper()):
            val = os.getenv(key)
            if val and val.strip():
                return val.strip()
        return None


class SystemKeyringSource:
    def get(self, service: str) -> Optional[str]:
        try:
            cred = _keyring.get_credential(service, None)
        except Exception as e:
            logger.debug("keyring credential lookup failed for %s: %s", service, e)
            cred = None
        if cred and getattr(cred, "password", None):
            return cred.password.strip()
        for account in ("API_KEY", "default", service):
            try:
                val = _keyring.get_password(service, account)
            except Exception as e:
                logger.debug("keyring lookup failed for %s/%s: %s", service, account, e)
                continue
            if val:
                return val.strip()
        return None


_ALLOWED_METHODS = {"env", "keyring"}


def _normalise_methods(method: Union[str, Iterable[str]]) -> List[str]:
    methods = [method] if isinstance(method, str) else list(method)
    norm: List[str] = []
    for m in methods:
        key = str(m).strip().lower()
        if key not in _ALLOWED_METHODS:
            raise ValueError(f"Unknown secrets method '{m}'. Allowed: {sorted(_ALLOWED_METHODS)}")
        if key not in norm:
            norm.append(key)
    return norm


def build_secret_sources(method: Union[str, Iterable[str]]) -> List[SecretSource]:
    sources: List[SecretSource] = []
    for name in _normalise_methods(method):
        if name == "env":
            sources.append(EnvSource())
        elif name == "keyring":
            sources.append(SystemKeyringSource())
    return sources


class SecretsResolver:
    """
    Resolve provider credentials using one or more methods in order.
    mapping: per-provider map of names -> service/env-key
      e.g. { "anthropic": { "api_key": "ANTHROPIC_API_KEY" } }
    A missing credential is returned as None; callers decide what that means.
    """
    def __init__(self, method: Union[str, Iterable[str]], mapping: Optional[Dict[str, Dict[str, str]]] = None):
        self._sources = build_secret_sources(method)
        self._map = mapping or {}

    def secret(self, provider: str, name: str = "api_key") -> Optional[str]:
        service = (self._map.get(provider) or {}).get(name, provider)
        for src in self._sources:
            val = src.get(service)
            if val:
                return val
        return None
