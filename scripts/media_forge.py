#!/usr/bin/env python3
"""Media Forge command line.

Usage:
  python scripts/media_forge.py generate "A lighthouse at dusk" --quality hd --size 1792x1024
  python scripts/media_forge.py edit "Add a red scarf" --image photo.png --mask mask.png
  python scripts/media_forge.py variation --image photo.png
  python scripts/media_forge.py chat "How is AAPL stock doing?"
  python scripts/media_forge.py classify "What's the market sentiment today?"
  python scripts/media_forge.py plans --operation edit

Notes:
- Loads the nearest .env without overriding variables already exported.
- Image commands print the result payload as JSON; chat prints raw stream frames.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from forge_media_api import api
from forge_media_api.core.classifier import classify_query
from forge_media_api.core.config import load_env, load_settings
from forge_media_api.core.contracts import QUALITIES, SIZES, STYLES, Transcription
from forge_media_api.core.errors import ErrorKind, GenerationError, error_payload
from forge_media_api.core.observability import configure_logging


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _image_options(parser: argparse.ArgumentParser, *, quality: bool = True) -> None:
    parser.add_argument("--size", default="1024x1024", choices=SIZES, help="Requested size (default: 1024x1024)")
    if quality:
        parser.add_argument("--quality", default="standard", choices=QUALITIES, help="Requested quality")
        parser.add_argument("--style", default="vivid", choices=STYLES, help="Requested style")
    parser.add_argument("--user", default=None, help="End-user identifier forwarded to the provider")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Media Forge: image generation with model fallback and streamed chat.")
    parser.add_argument("--log-level", default=None, help="Override FORGE_MEDIA_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate an image from a prompt")
    gen.add_argument("prompt", help="Prompt text")
    _image_options(gen)

    edit = sub.add_parser("edit", help="Edit a source image")
    edit.add_argument("prompt", help="Edit instructions")
    edit.add_argument("--image", required=True, help="Source image path, URL or data URL")
    edit.add_argument("--mask", default=None, help="Optional mask image")
    edit.add_argument("--strength", type=float, default=None, help="Edit strength between 0 and 1")
    _image_options(edit)

    var = sub.add_parser("variation", help="Create a variation of a source image")
    var.add_argument("--image", required=True, help="Source image path, URL or data URL")
    var.add_argument("--prompt", default="", help="Optional prompt")
    _image_options(var, quality=False)

    chat = sub.add_parser("chat", help="Stream a chat completion as wire frames")
    chat.add_argument("message", help="Latest user message")
    chat.add_argument("--history", default=None, help="JSON file with earlier {role, content} messages")
    chat.add_argument("--no-classify", action="store_true", help="Skip financial query classification")
    chat.add_argument("--file-uri", default=None, help="Uploaded file URI to attach")
    chat.add_argument("--file-mime-type", default=None, help="MIME type of the attached file")
    chat.add_argument("--transcript", default=None, help="Transcription text of the attached audio/video")

    classify = sub.add_parser("classify", help="Classify a message as a financial query")
    classify.add_argument("message", help="Message text")

    plans = sub.add_parser("plans", help="Show the fallback plans and candidate capabilities")
    plans.add_argument("--operation", default=None, choices=("generate", "edit", "variation"))
    return parser


def _read_history(path: Optional[str]) -> List[dict]:
    if not path:
        return []
    payload = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"{path} must contain a JSON list of messages.")
    return payload


def _fail(exc: BaseException) -> int:
    if isinstance(exc, ValueError):
        exc = GenerationError(ErrorKind.INVALID_PARAMETERS, str(exc))
    _print_json({"success": False, **error_payload(exc)})
    return 1


def _run_image(args: argparse.Namespace) -> int:
    try:
        if args.command == "generate":
            result = api.generate(
                prompt=args.prompt,
                quality=args.quality,
                style=args.style,
                size=args.size,
                user=args.user,
            )
        elif args.command == "edit":
            result = api.edit(
                prompt=args.prompt,
                source_image=args.image,
                mask=args.mask,
                strength=args.strength,
                quality=args.quality,
                style=args.style,
                size=args.size,
                user=args.user,
            )
        else:
            result = api.variation(
                source_image=args.image,
                prompt=args.prompt,
                size=args.size,
                user=args.user,
            )
    except GenerationError as exc:
        return _fail(exc)
    _print_json(result.to_payload())
    return 0


def _run_chat(args: argparse.Namespace, out) -> int:
    messages = _read_history(args.history)
    messages.append({"role": "user", "content": args.message})
    transcription = Transcription(text=args.transcript) if args.transcript else None
    for line in api.stream_chat(
        messages,
        classify=not args.no_classify,
        file_uri=args.file_uri,
        file_mime_type=args.file_mime_type,
        transcription=transcription,
    ):
        out.write(line)
        out.flush()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    load_env(Path(__file__))
    try:
        settings = load_settings()
    except ValueError as exc:
        return _fail(exc)
    configure_logging(args.log_level or settings.log_level)

    if args.command in ("generate", "edit", "variation"):
        return _run_image(args)
    if args.command == "chat":
        return _run_chat(args, sys.stdout)
    if args.command == "classify":
        query = classify_query(args.message)
        _print_json(
            {
                "isFinancial": query.is_financial,
                "queryType": query.query_type,
                "entities": list(query.entities),
            }
        )
        return 0
    if args.command == "plans":
        try:
            plans = api.describe_plans(args.operation)
        except ValueError as exc:
            return _fail(exc)
        _print_json(plans)
        return 0
    parser.error(f"Unknown command {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
