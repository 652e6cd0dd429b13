"""Newline-delimited frame encoding for streamed completions.

Wire format, one frame per line::

    0:"<escaped text>"            text delta
    3:{"error":"<escaped text>"}  error (terminal)
    d:{"finishReason":"<reason>"} done (terminal)

Payload text is escaped with ``ESCAPE_TABLE`` so that a payload can never
contain a raw newline and end a frame early.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional, Union

from .errors import ErrorKind, GenerationError, describe_error
from .observability import RequestContext, new_context


ESCAPE_TABLE = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
)
_UNESCAPE = {escaped[1]: raw for raw, escaped in ESCAPE_TABLE}

TEXT_PREFIX = "0:"
ERROR_PREFIX = "3:"
DONE_PREFIX = "d:"


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ErrorFrame:
    message: str


@dataclass(frozen=True)
class Done:
    reason: str = "stop"


StreamFrame = Union[TextDelta, ErrorFrame, Done]


def is_terminal(frame: StreamFrame) -> bool:
    return isinstance(frame, (ErrorFrame, Done))


def escape_text(text: str) -> str:
    for raw, escaped in ESCAPE_TABLE:
        text = text.replace(raw, escaped)
    return text


def unescape_text(text: str) -> str:
    out = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\":
            if i + 1 >= len(text):
                raise ValueError("Dangling escape at end of payload.")
            following = text[i + 1]
            if following not in _UNESCAPE:
                raise ValueError(f"Unknown escape sequence '\\{following}'.")
            out.append(_UNESCAPE[following])
            i += 2
            continue
        out.append(char)
        i += 1
    return "".join(out)


def encode_frame(frame: StreamFrame) -> str:
    if isinstance(frame, TextDelta):
        return f'{TEXT_PREFIX}"{escape_text(frame.text)}"\n'
    if isinstance(frame, ErrorFrame):
        return f'{ERROR_PREFIX}{{"error":"{escape_text(frame.message)}"}}\n'
    if isinstance(frame, Done):
        return f'{DONE_PREFIX}{{"finishReason":"{escape_text(frame.reason)}"}}\n'
    raise TypeError(f"Not a stream frame: {frame!r}")


def decode_frame(line: str) -> StreamFrame:
    line = line.rstrip("\n")
    if line.startswith(TEXT_PREFIX):
        body = line[len(TEXT_PREFIX):]
        if len(body) < 2 or not (body.startswith('"') and body.endswith('"')):
            raise ValueError(f"Malformed text frame: {line!r}")
        return TextDelta(unescape_text(body[1:-1]))
    if line.startswith(ERROR_PREFIX):
        payload = json.loads(line[len(ERROR_PREFIX):], strict=False)
        return ErrorFrame(str(payload.get("error", "")))
    if line.startswith(DONE_PREFIX):
        payload = json.loads(line[len(DONE_PREFIX):], strict=False)
        return Done(str(payload.get("finishReason", "stop")))
    raise ValueError(f"Unknown frame: {line!r}")


def iter_frames(
    chunks: Iterable[str],
    context: Optional[RequestContext] = None,
    classify_error: Optional[Callable[[BaseException], ErrorKind]] = None,
) -> Iterator[StreamFrame]:
    """One ``TextDelta`` per fragment, then exactly one terminal frame.

    An upstream failure becomes an ``ErrorFrame`` carrying the stable message
    for the kind ``classify_error`` assigns (Unknown without a classifier).
    """
    ctx = context or new_context("stream")
    count = 0
    try:
        for chunk in chunks:
            count += 1
            yield TextDelta(chunk)
    except Exception as exc:
        if isinstance(exc, GenerationError):
            kind = exc.kind
        elif classify_error is not None:
            kind = classify_error(exc)
        else:
            kind = ErrorKind.UNKNOWN
        ctx.logger.error("Upstream stream failed after %d fragment(s) (%s): %s", count, kind.value, exc)
        yield ErrorFrame(describe_error(kind, str(exc) or exc.__class__.__name__))
        return
    ctx.logger.debug("Stream finished after %d fragment(s)", count)
    yield Done("stop")


def encode_stream(
    chunks: Iterable[str],
    context: Optional[RequestContext] = None,
    classify_error: Optional[Callable[[BaseException], ErrorKind]] = None,
) -> Iterator[str]:
    for frame in iter_frames(chunks, context, classify_error):
        yield encode_frame(frame)


def error_stream(message: str) -> Iterator[str]:
    yield encode_frame(ErrorFrame(message))
