from __future__ import annotations
from typing import Callable, Dict, List, Type
from importlib import import_module

_BUILTINS = (
    "termchat.providers.openai_adapter",
    "termchat.providers.anthropic_adapter",
)


class ProviderRegistry:
    """
    Closed set of upstream adapters keyed by provider tag.
    Adding a provider means adding one adapter module and registering it.
    """
    _classes: Dict[str, Type] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[Type], Type]:
        name = name.lower()
        def deco(klass: Type) -> Type:
            klass.name = name
            cls._classes[name] = klass
            return klass
        return deco

    @classmethod
    def get(cls, name: str) -> Type:
        key = str(name).lower()
        if key not in cls._classes:
            raise KeyError(f"Provider '{name}' not registered")
        return cls._classes[key]

    @classmethod
    def names(cls) -> List[str]:
        return list(cls._classes)

    @classmethod
    def ensure_imports(cls) -> None:
        """
        Import built-in adapters so their @register decorators run.
        Call once at bootstrap before get().
        """
        for module in _BUILTINS:
            import_module(module)
