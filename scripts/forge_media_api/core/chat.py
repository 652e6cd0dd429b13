"""Turn a conversation into one streamed completion request."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from forge_media_api.providers.base import ChatRequest, ChatTurn

from .contracts import ChatMessage, Transcription
from .digest import inject_context
from .errors import ErrorKind, GenerationError
from .observability import RequestContext, new_context
from .sentiment import DigestSource


WELCOME_MESSAGE_ID = "welcome-message"

AUDIO_INSTRUCTION = (
    "Please analyze this audio file. Provide insights about the content, context, "
    "and any notable aspects you observe."
)
IMAGE_INSTRUCTION = (
    "Please analyze this image. Describe what you see and provide any relevant insights or observations."
)
VIDEO_INSTRUCTION = """Please provide a comprehensive analysis of this entire video from start to finish. Include:

1. **Overview**: Brief summary of the video's purpose and content
2. **Visual Analysis**:
   - Describe all scenes in chronological order with timestamps
   - Note any text, graphics, or visual effects
   - Describe camera movements, transitions, and editing style
3. **Audio Analysis**:
   - Transcribe or summarize any narration, dialogue, or speech
   - Describe background music, sound effects, or audio cues
   - Note the tone and pacing of audio elements
4. **Technical Aspects**: Video quality, aspect ratio, production value
5. **Complete Timeline**: Provide a scene-by-scene breakdown with approximate timestamps
6. **Key Messages**: Main themes or messages conveyed
7. **Overall Assessment**: Style, effectiveness, and notable features

Please ensure you analyze the ENTIRE video duration from beginning to end."""
VIDEO_CHECKLIST = """

Please ensure your analysis covers:
- The complete video from start to finish
- All visual scenes with timestamps
- Any audio, narration, or dialogue
- Technical aspects and production quality
- A detailed timeline of events
- Key messages and themes

Analyze the ENTIRE video duration, not just the beginning."""

MessageLike = Union[ChatMessage, Mapping[str, Any]]


def _invalid(message: str) -> GenerationError:
    return GenerationError(ErrorKind.INVALID_PARAMETERS, message)


def coerce_messages(messages: Sequence[MessageLike]) -> List[ChatMessage]:
    if not isinstance(messages, (list, tuple)):
        raise _invalid("Invalid messages format")
    coerced: List[ChatMessage] = []
    for raw in messages:
        if isinstance(raw, ChatMessage):
            coerced.append(raw)
        elif isinstance(raw, Mapping):
            coerced.append(ChatMessage(role=str(raw.get("role", "")), content=str(raw.get("content") or ""), id=raw.get("id")))
        else:
            raise _invalid("Invalid messages format")
    return coerced


def build_history(messages: Sequence[ChatMessage]) -> List[ChatTurn]:
    """Everything before the last message, in provider roles, starting with a user turn."""
    kept = [m for m in messages if m.role != "system" and m.id != WELCOME_MESSAGE_ID][:-1]
    history = [ChatTurn(role="user" if m.role == "user" else "model", text=m.content) for m in kept]
    while history and history[0].role != "user":
        history.pop(0)
    return history


def _format_duration(seconds: float) -> str:
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


def apply_media_instructions(text: str, file_mime_type: Optional[str]) -> str:
    if not file_mime_type:
        return text
    if not text.strip():
        if file_mime_type.startswith("audio/"):
            return AUDIO_INSTRUCTION
        if file_mime_type.startswith("video/"):
            return VIDEO_INSTRUCTION
        if file_mime_type.startswith("image/"):
            return IMAGE_INSTRUCTION
        return text
    if file_mime_type.startswith("video/") and "analyze" in text.strip().lower():
        return text + VIDEO_CHECKLIST
    return text


def fold_transcription(text: str, transcription: Optional[Transcription], file_mime_type: Optional[str]) -> str:
    if transcription is None or not transcription.text:
        return text
    if not file_mime_type or not file_mime_type.startswith(("audio/", "video/")):
        return text
    duration = f" (Duration: {_format_duration(transcription.duration)})" if transcription.duration else ""
    language = f" [Language: {transcription.language}]" if transcription.language else ""
    return (
        f"{text}\n\nTranscription of audio track{language}{duration}:\n\"{transcription.text}\"\n\n"
        "Please incorporate this transcription into your complete analysis."
    )


def generation_config(file_mime_type: Optional[str]) -> Dict[str, Any]:
    is_video = bool(file_mime_type and file_mime_type.startswith("video/"))
    return {
        "temperature": 0.7,
        "top_k": 1,
        "top_p": 1.0,
        "max_output_tokens": 8192 if is_video else 4096,
    }


def prepare_chat(
    messages: Sequence[MessageLike],
    *,
    model: str,
    classify: bool = True,
    digest_source: Optional[DigestSource] = None,
    file_uri: Optional[str] = None,
    file_mime_type: Optional[str] = None,
    transcription: Optional[Transcription] = None,
    context: Optional[RequestContext] = None,
) -> ChatRequest:
    ctx = context or new_context("chat")
    conversation = coerce_messages(messages)
    if not conversation or conversation[-1].role != "user":
        raise _invalid("No user message found")
    last = conversation[-1]

    text = last.content
    if classify:
        text = inject_context(text, digest_source, ctx)
    # Media defaults key off what the user typed, not the injected digest.
    if file_mime_type and not last.content.strip():
        text = apply_media_instructions(last.content, file_mime_type)
    else:
        text = apply_media_instructions(text, file_mime_type)
    text = fold_transcription(text, transcription, file_mime_type)
    if file_uri and file_mime_type:
        ctx.logger.info("Attaching file %s (%s)", file_uri, file_mime_type)

    return ChatRequest(
        model=model,
        history=build_history(conversation),
        text=text,
        file_uri=file_uri if file_mime_type else None,
        file_mime_type=file_mime_type if file_uri else None,
        generation_config=generation_config(file_mime_type),
    )
