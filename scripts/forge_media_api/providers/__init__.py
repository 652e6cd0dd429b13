"""Provider adapter registry."""

from __future__ import annotations

import threading
from typing import Dict, Optional, Tuple

from forge_media_api.core.config import Settings, load_settings

from .base import ChatProvider, ProviderAdapter


_ADAPTERS: Dict[Tuple[str, Settings], ProviderAdapter] = {}
_CHAT_PROVIDERS: Dict[str, ChatProvider] = {}
_REGISTRY_LOCK = threading.Lock()


def _build_adapter(provider: str, settings: Settings) -> ProviderAdapter:
    if provider == "openai":
        from .openai import OpenAIImageAdapter
        return OpenAIImageAdapter(download_timeout=settings.download_timeout)
    if provider == "wavespeed":
        from .wavespeed import WaveSpeedAdapter
        return WaveSpeedAdapter(request_timeout=settings.request_timeout)
    raise ValueError(f"No adapter registered for provider '{provider}'.")


def get_adapter(provider: str, settings: Optional[Settings] = None) -> ProviderAdapter:
    """Return the shared adapter for ``provider`` built with ``settings``."""
    key = (provider.strip().lower(), settings or load_settings())
    with _REGISTRY_LOCK:
        adapter = _ADAPTERS.get(key)
        if adapter is None:
            adapter = _build_adapter(*key)
            _ADAPTERS[key] = adapter
        return adapter


def get_chat_provider(provider: str = "gemini") -> ChatProvider:
    key = provider.strip().lower()
    if key != "gemini":
        raise ValueError(f"No chat provider registered for '{provider}'.")
    with _REGISTRY_LOCK:
        chat = _CHAT_PROVIDERS.get(key)
        if chat is None:
            from .gemini import GeminiChatProvider

            chat = GeminiChatProvider()
            _CHAT_PROVIDERS[key] = chat
        return chat


__all__ = ["get_adapter", "get_chat_provider", "ProviderAdapter", "ChatProvider"]
