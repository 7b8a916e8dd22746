"""
Incremental framing of concatenated JSON values.

Network reads split and merge JSON values arbitrarily, so the framer keeps a
text buffer plus the scan state (nesting depth, string and escape flags) of
the value it is currently inside. `feed()` returns every value completed by
the new text and keeps the incomplete tail for the next call.

Server-sent-event framing is tolerated: `data:` prefixes are skipped and a
`[DONE]` sentinel sets `done_marker`; no value after it is returned.
"""

from __future__ import annotations

from typing import List, Optional

_WS = " \t\r\n"
_SSE_DATA = "data:"
_SSE_DONE = "[DONE]"
_SCALAR_STOP = _WS + '{["'


class JsonStreamFramer:
    def __init__(self) -> None:
        self._buf = ""
        self._pos = 0
        self._start: Optional[int] = None
        self._kind: Optional[str] = None
        self._depth = 0
        self._in_string = False
        self._escape = False
        self.done_marker = False
        self.leftover = ""

    @property
    def pending(self) -> str:
        """Text buffered for a value that is not complete yet."""
        if self._start is not None:
            return self._buf[self._start:]
        return self._buf[self._pos:].strip(_WS)

    def feed(self, text: str) -> List[str]:
        """Append `text` and return the raw text of every completed value, in order."""
        if text:
            self._buf += text
        values: List[str] = []
        while not self.done_marker:
            value = self._next_value()
            if value is None:
                break
            values.append(value)
        self._compact()
        return values

    def close(self) -> List[str]:
        """
        Flush at end of stream.

        A trailing scalar (number, literal) is only self-delimiting at the end of
        input, so it is returned here. Whatever is left incomplete is stored in
        `leftover` and the framer is reset.
        """
        values = self.feed("")
        if self._start is not None and self._kind == "scalar":
            values.append(self._emit(len(self._buf)))
        self.leftover = self.pending
        self._buf = ""
        self._pos = 0
        self._reset_value()
        return values

    def _reset_value(self) -> None:
        self._start = None
        self._kind = None
        self._depth = 0
        self._in_string = False
        self._escape = False

    def _compact(self) -> None:
        cut = self._start if self._start is not None else self._pos
        if cut:
            self._buf = self._buf[cut:]
            self._pos -= cut
            if self._start is not None:
                self._start -= cut

    def _emit(self, end: int) -> str:
        value = self._buf[self._start:end]
        self._pos = end
        self._reset_value()
        return value

    def _begin_value(self) -> bool:
        """Skip separators and SSE markers; return False when more input is needed."""
        buf = self._buf
        n = len(buf)
        i = self._pos
        while True:
            while i < n and buf[i] in _WS:
                i += 1
            self._pos = i
            if i >= n:
                return False
            if buf.startswith(_SSE_DATA, i):
                i += len(_SSE_DATA)
                continue
            if buf.startswith(_SSE_DONE, i):
                # Nothing after the sentinel belongs to this response.
                self._pos = i + len(_SSE_DONE)
                self.done_marker = True
                return False
            tail = buf[i:]
            if any(len(tail) < len(m) and m.startswith(tail) for m in (_SSE_DATA, _SSE_DONE)):
                return False
            break

        self._start = i
        ch = buf[i]
        if ch in "{[":
            self._kind = "container"
            self._depth = 1
            self._pos = i + 1
        elif ch == '"':
            self._kind = "string"
            self._in_string = True
            self._pos = i + 1
        else:
            self._kind = "scalar"
            self._pos = i
        return True

    def _next_value(self) -> Optional[str]:
        if self._start is None and not self._begin_value():
            return None

        buf = self._buf
        n = len(buf)
        i = self._pos

        if self._kind == "scalar":
            while i < n and buf[i] not in _SCALAR_STOP:
                i += 1
            if i < n:
                return self._emit(i)
            self._pos = i
            return None

        while i < n:
            ch = buf[i]
            if self._in_string:
                if self._escape:
                    self._escape = False
                elif ch == "\\":
                    self._escape = True
                elif ch == '"':
                    self._in_string = False
                    if self._kind == "string":
                        return self._emit(i + 1)
            elif ch == '"':
                self._in_string = True
            elif ch in "{[":
                self._depth += 1
            elif ch in "}]":
                self._depth -= 1
                if self._depth == 0:
                    return self._emit(i + 1)
            i += 1

        self._pos = i
        return None
