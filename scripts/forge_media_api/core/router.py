"""Fallback plan declarations and provider alias normalization."""

from __future__ import annotations

import os
import re
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .capabilities import describe, get_capabilities
from .contracts import OPERATIONS, Candidate, FallbackPlan


PROVIDER_ALIASES: Dict[str, str] = {
    "openai": "openai",
    "gpt-image": "openai",
    "gpt-image-1": "openai",
    "dalle": "openai",
    "dall-e": "openai",
    "wavespeed": "wavespeed",
    "wavespeed-ai": "wavespeed",
    "flux": "wavespeed",
    "gemini": "gemini",
    "google": "gemini",
}

# Candidate order per operation. Earlier entries are preferred; later ones are
# only reached when every earlier candidate reports its model unavailable.
DEFAULT_PLANS: Dict[str, Tuple[Tuple[str, str], ...]] = {
    "generate": (
        ("wavespeed", "flux-dev-ultra-fast"),
        ("openai", "gpt-image-1"),
        ("openai", "dall-e-3"),
    ),
    "edit": (
        ("openai", "gpt-image-1"),
        ("openai", "dall-e-2"),
    ),
    "variation": (
        ("openai", "gpt-image-1"),
        ("openai", "dall-e-2"),
    ),
}


def normalize_provider(provider: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", provider.strip().lower()).strip("-")
    return PROVIDER_ALIASES.get(slug, slug)


def parse_plan_spec(spec: str) -> List[Tuple[str, str]]:
    """Parse ``"openai/gpt-image-1, openai/dall-e-2"`` into candidate pairs."""
    pairs: List[Tuple[str, str]] = []
    for entry in spec.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if "/" not in entry:
            raise ValueError(f"Plan entry '{entry}' must look like provider/model.")
        provider, model = entry.split("/", 1)
        pairs.append((normalize_provider(provider), model.strip()))
    if not pairs:
        raise ValueError("Plan override is empty.")
    return pairs


def build_plan(
    operation: str,
    candidates: Optional[Sequence[Tuple[str, str]]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> FallbackPlan:
    if operation not in OPERATIONS:
        raise ValueError(f"Unknown operation '{operation}'")
    if candidates is None:
        env = os.environ if environ is None else environ
        override = env.get(f"FORGE_MEDIA_PLAN_{operation.upper()}")
        candidates = parse_plan_spec(override) if override else DEFAULT_PLANS[operation]

    built: List[Candidate] = []
    for provider, model in candidates:
        caps = get_capabilities(provider, model)
        if operation not in caps.operations:
            raise ValueError(f"{provider}/{model} cannot serve '{operation}'.")
        built.append(Candidate(provider=caps.provider, model=caps.model, capabilities=caps))
    return FallbackPlan(operation=operation, candidates=tuple(built))


def describe_plan(plan: FallbackPlan) -> dict:
    return {
        "operation": plan.operation,
        "candidates": [describe(candidate.capabilities) for candidate in plan.candidates],
    }
