"""Candidate capability registry."""

from __future__ import annotations

from typing import Dict

from .contracts import CapabilityDescriptor


_OPENAI_GPT_IMAGE_SIZES = ("1024x1024", "1536x1024", "1024x1536")
_WIDE_SIZES = ("1024x1024", "1792x1024", "1024x1792")

_CAPABILITIES: Dict[str, CapabilityDescriptor] = {
    "wavespeed/flux-dev-ultra-fast": CapabilityDescriptor(
        provider="wavespeed",
        model="flux-dev-ultra-fast",
        operations=frozenset({"generate", "edit"}),
        qualities=("standard", "hd"),
        sizes=_WIDE_SIZES,
        default_size="1024x1024",
        styles=frozenset({"vivid", "natural"}),
        synchronous=False,
        supports_mask=False,
    ),
    "openai/gpt-image-1": CapabilityDescriptor(
        provider="openai",
        model="gpt-image-1",
        operations=frozenset({"generate", "edit", "variation"}),
        qualities=("low", "medium", "high"),
        sizes=_OPENAI_GPT_IMAGE_SIZES,
        default_size="1024x1024",
        styles=frozenset(),
        synchronous=True,
        supports_mask=True,
    ),
    "openai/dall-e-3": CapabilityDescriptor(
        provider="openai",
        model="dall-e-3",
        operations=frozenset({"generate"}),
        qualities=("standard", "hd"),
        sizes=_WIDE_SIZES,
        default_size="1024x1024",
        styles=frozenset({"vivid", "natural"}),
        synchronous=True,
        supports_mask=False,
    ),
    # Legacy model restricted to square output.
    "openai/dall-e-2": CapabilityDescriptor(
        provider="openai",
        model="dall-e-2",
        operations=frozenset({"generate", "edit", "variation"}),
        qualities=("standard",),
        sizes=("256x256", "512x512", "1024x1024"),
        default_size="1024x1024",
        styles=frozenset(),
        synchronous=True,
        supports_mask=True,
    ),
}


def capability_key(provider: str, model: str) -> str:
    return f"{provider.strip().lower()}/{model.strip().lower()}"


def get_capabilities(provider: str, model: str) -> CapabilityDescriptor:
    key = capability_key(provider, model)
    if key not in _CAPABILITIES:
        raise ValueError(f"Unknown candidate '{provider}/{model}'")
    return _CAPABILITIES[key]


def list_capabilities() -> Dict[str, CapabilityDescriptor]:
    return dict(_CAPABILITIES)


def describe(caps: CapabilityDescriptor) -> dict:
    return {
        "provider": caps.provider,
        "model": caps.model,
        "operations": sorted(caps.operations),
        "quality": list(caps.qualities),
        "sizes": list(caps.sizes),
        "defaultSize": caps.default_size,
        "style": sorted(caps.styles),
        "mode": "sync" if caps.synchronous else "submit-and-poll",
        "mask": caps.supports_mask,
    }
