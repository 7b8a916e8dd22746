"""
Streaming decoder: raw response bytes -> printable text fragments.

Bytes go through an incremental UTF-8 decoder and the JSON framer; each framed
value is validated as a chat-completion chunk and drives a small state machine:

    STREAMING --(no finish reason)--> STREAMING   emit non-empty content
    STREAMING --(stop)--------------> DONE        emit nothing more
    STREAMING --(length)------------> STOPPING    emit trailing content
    STOPPING  ----------------------> DONE
    STREAMING --(anything else)-----> DONE        raise ProtocolViolation

Malformed single values are reported through `on_error` and skipped. End of
input without a finish reason counts as `stop`.
"""

from __future__ import annotations

import codecs
import json
import logging
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional

from pydantic import ValidationError

from rag.errors import ProtocolViolation
from rag.stream.framing import JsonStreamFramer
from rag.stream.schemas import ChatCompletionChunk, CompletionChunkEvent, FinishReason

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[ProtocolViolation], None]


class StreamState(str, Enum):
    STREAMING = "streaming"
    STOPPING = "stopping"
    DONE = "done"


def _log_violation(exc: ProtocolViolation) -> None:
    logger.warning("Skipping stream value: %s", exc)


def parse_event(raw: str) -> CompletionChunkEvent:
    """Parse one framed JSON value into a completion event (raises ProtocolViolation)."""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProtocolViolation(f"unparseable stream value: {exc.msg}", raw=raw) from exc
    try:
        chunk = ChatCompletionChunk.model_validate(payload)
    except ValidationError as exc:
        raise ProtocolViolation(
            f"stream value is not a completion chunk ({exc.error_count()} validation errors)",
            raw=raw,
        ) from exc
    return CompletionChunkEvent.from_chunk(chunk)


class StreamDecoder:
    """Decoder for one turn. Create a new instance per response."""

    def __init__(self, on_error: Optional[ErrorHandler] = None):
        self.state = StreamState.STREAMING
        self.finish_reason: Optional[str] = None
        self.errors: List[ProtocolViolation] = []
        self._on_error = on_error or _log_violation
        self._framer = JsonStreamFramer()
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._first = True

    @property
    def done(self) -> bool:
        return self.state is StreamState.DONE

    def feed(self, data: bytes) -> Iterator[str]:
        """Consume one network read and yield the fragments it completes."""
        if self.done or not data:
            return
        yield from self._handle(self._framer.feed(self._utf8.decode(data)))
        if self._framer.done_marker and not self.done:
            self._finish(FinishReason.STOP.value)

    def finish(self) -> Iterator[str]:
        """Flush buffered input at end of stream."""
        if self.done:
            return
        values = self._framer.feed(self._utf8.decode(b"", final=True))
        values.extend(self._framer.close())
        yield from self._handle(values)
        if self.done:
            return
        if self._framer.leftover:
            self._report(
                ProtocolViolation("stream ended inside an incomplete JSON value", raw=self._framer.leftover)
            )
        self._finish(FinishReason.STOP.value)

    def decode(self, chunks: Iterable[bytes]) -> Iterator[str]:
        """Yield fragments for a whole byte stream, stopping at the first terminal reason."""
        for data in chunks:
            yield from self.feed(data)
            if self.done:
                return
        yield from self.finish()

    def _finish(self, reason: str) -> None:
        self.finish_reason = reason
        self.state = StreamState.DONE

    def _report(self, exc: ProtocolViolation) -> None:
        self.errors.append(exc)
        self._on_error(exc)

    def _handle(self, values: List[str]) -> Iterator[str]:
        for raw in values:
            if self.done:
                return
            try:
                event = parse_event(raw)
            except ProtocolViolation as exc:
                self._report(exc)
                continue
            yield from self._apply(event)

    def _apply(self, event: CompletionChunkEvent) -> Iterator[str]:
        reason = event.finish_reason
        if reason is None:
            yield from self._emit(event.content)
        elif reason == FinishReason.STOP.value:
            self._finish(reason)
        elif reason == FinishReason.LENGTH.value:
            self.state = StreamState.STOPPING
            # The trailing fragment is printed as sent.
            if event.content:
                yield event.content
            self._finish(reason)
        else:
            self._finish(reason)
            logger.error("Unexpected finish reason %r", reason)
            raise ProtocolViolation(f"unexpected finish reason {reason!r}")

    def _emit(self, content: Optional[str]) -> Iterator[str]:
        if not content:
            return
        if self._first:
            # Only the first non-empty fragment of a turn: avoids a stray space after the prompt.
            self._first = False
            content = content.lstrip()
            if not content:
                return
        yield content


def decode_stream(chunks: Iterable[bytes], on_error: Optional[ErrorHandler] = None) -> Iterator[str]:
    return StreamDecoder(on_error=on_error).decode(chunks)
