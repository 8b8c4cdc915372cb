"""Narration provider registry and factory."""

from rebook.tts.base import NarrationProvider

PROVIDER_REGISTRY: dict[str, type[NarrationProvider]] = {}


def register_provider(name: str):
    """Decorator to register a narration provider class."""
    def decorator(cls):
        PROVIDER_REGISTRY[name] = cls
        return cls
    return decorator


def get_provider(name: str, **options) -> NarrationProvider:
    """Instantiate a narration provider by name."""
    if name not in PROVIDER_REGISTRY:
        available = ", ".join(PROVIDER_REGISTRY.keys()) or "(none)"
        raise ValueError(f"Unknown provider '{name}'. Available: {available}")
    return PROVIDER_REGISTRY[name](**options)


def list_providers() -> list[str]:
    """Return names of all registered providers."""
    return list(PROVIDER_REGISTRY.keys())


def import_providers() -> None:
    """Import all provider modules to trigger registration."""
    import rebook.tts.edge_provider  # noqa: F401
    import rebook.tts.external_provider  # noqa: F401
    import rebook.tts.kokoro_provider  # noqa: F401
    import rebook.tts.silent_provider  # noqa: F401
