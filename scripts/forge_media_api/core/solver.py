"""Normalize a semantic request onto one candidate's parameter vocabulary."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from .contracts import OPERATIONS, QUALITIES, SIZES, STYLES, Candidate, GenerationRequest, ResolvedRequest
from .errors import ErrorKind, GenerationError


# low < medium/standard < high/hd
QUALITY_LEVELS: Dict[str, int] = {
    "low": 0,
    "medium": 1,
    "standard": 1,
    "high": 2,
    "hd": 2,
}

_WAVESPEED_STEPS = {"hd": 50}
_WAVESPEED_DEFAULT_STEPS = 28
_WAVESPEED_GUIDANCE = {"vivid": 4.5}
_WAVESPEED_DEFAULT_GUIDANCE = 3.0
_WAVESPEED_GENERATE_STRENGTH = 0.8
_WAVESPEED_EDIT_STRENGTH = 0.7


def _invalid(message: str) -> GenerationError:
    return GenerationError(ErrorKind.INVALID_PARAMETERS, message)


def validate_request(request: GenerationRequest) -> None:
    if request.operation not in OPERATIONS:
        raise _invalid(f"Unknown operation '{request.operation}'.")
    if request.operation != "variation" and not (request.prompt or "").strip():
        raise _invalid("Prompt is required.")
    if request.quality not in QUALITIES:
        raise _invalid(f"Unsupported quality '{request.quality}'; expected one of {', '.join(QUALITIES)}.")
    if request.style not in STYLES:
        raise _invalid(f"Unsupported style '{request.style}'; expected one of {', '.join(STYLES)}.")
    if request.size not in SIZES:
        raise _invalid(f"Unsupported size '{request.size}'; expected one of {', '.join(SIZES)}.")
    if request.operation in ("edit", "variation") and request.source_image is None:
        raise _invalid(f"A source image is required for '{request.operation}'.")
    if request.mask is not None and request.operation != "edit":
        raise _invalid("A mask is only accepted for 'edit'.")
    if request.strength is not None and not 0.0 <= request.strength <= 1.0:
        raise _invalid("Strength must be between 0.0 and 1.0.")


def normalize_quality(requested: str, vocabulary: Sequence[str]) -> str:
    """Clamp ``requested`` down to the best level the vocabulary offers."""
    if not vocabulary:
        raise ValueError("Quality vocabulary must not be empty.")
    rank = QUALITY_LEVELS[requested]
    best: Optional[str] = None
    for term in vocabulary:
        level = QUALITY_LEVELS[term]
        if level <= rank and (best is None or level >= QUALITY_LEVELS[best]):
            best = term
    if best is not None:
        return best
    # Below the candidate's floor: its lowest level is the closest it offers.
    return min(vocabulary, key=lambda term: QUALITY_LEVELS[term])


def parse_size(size: str) -> Tuple[int, int]:
    width, _, height = size.partition("x")
    return int(width), int(height)


def _area(size: str) -> int:
    width, height = parse_size(size)
    return width * height


def _fits(size: str, width: int, height: int) -> bool:
    w, h = parse_size(size)
    return w <= width and h <= height


def normalize_size(requested: str, supported: Sequence[str], default_size: str) -> Optional[str]:
    """Map ``requested`` onto a supported size that is never larger.

    An exact match wins. Otherwise the declared default is used when it fits
    inside the requested dimensions, then the largest supported size that
    does. Returns ``None`` when no supported size fits.
    """
    if requested in supported:
        return requested
    width, height = parse_size(requested)
    fitting = [size for size in supported if _fits(size, width, height)]
    if not fitting:
        return None
    if default_size in fitting:
        return default_size
    return max(fitting, key=_area)


def _wavespeed_params(request: GenerationRequest, quality: str, style: Optional[str], size: str) -> Dict[str, Any]:
    if request.strength is not None:
        strength = request.strength
    elif request.operation == "edit":
        strength = _WAVESPEED_EDIT_STRENGTH
    else:
        strength = _WAVESPEED_GENERATE_STRENGTH
    return {
        "size": size.replace("x", "*"),
        "num_inference_steps": _WAVESPEED_STEPS.get(quality, _WAVESPEED_DEFAULT_STEPS),
        "guidance_scale": _WAVESPEED_GUIDANCE.get(style or "", _WAVESPEED_DEFAULT_GUIDANCE),
        "seed": -1,
        "enable_safety_checker": True,
        "strength": strength,
    }


def resolve_request(request: GenerationRequest, candidate: Candidate) -> ResolvedRequest:
    caps = candidate.capabilities
    if request.operation not in caps.operations:
        raise ValueError(f"{candidate.label} does not support '{request.operation}'.")
    warnings: List[str] = []

    quality = normalize_quality(request.quality, caps.qualities)
    if QUALITY_LEVELS[quality] != QUALITY_LEVELS[request.quality]:
        warnings.append(f"{candidate.label} quality clamped from {request.quality} to {quality}.")

    size = normalize_size(request.size, caps.sizes, caps.default_size)
    if size is None:
        raise GenerationError(
            ErrorKind.MODEL_UNAVAILABLE,
            f"{candidate.label} offers no size at or below {request.size}.",
            provider=candidate.provider,
            model=candidate.model,
        )
    if size != request.size:
        warnings.append(f"{candidate.label} does not support {request.size}; using {size}.")

    style: Optional[str] = request.style if request.style in caps.styles else None
    if style is None and caps.styles:
        warnings.append(f"{candidate.label} does not support style {request.style}.")

    mask = request.mask
    if mask is not None and not caps.supports_mask:
        warnings.append(f"{candidate.label} does not support masks; mask ignored.")
        mask = None

    provider_params: Dict[str, Any] = {}
    if candidate.provider == "wavespeed":
        provider_params = _wavespeed_params(request, quality, style, size)

    return ResolvedRequest(
        provider=candidate.provider,
        model=candidate.model,
        operation=request.operation,
        prompt=request.prompt.strip() if request.prompt else "",
        quality=quality,
        style=style,
        size=size,
        requested_quality=request.quality,
        requested_size=request.size,
        requested_style=request.style,
        source_image=request.source_image,
        mask=mask,
        strength=request.strength,
        user=request.user,
        provider_params=provider_params,
        warnings=tuple(warnings),
    )
