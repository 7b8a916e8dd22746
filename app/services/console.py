"""
Interactive console loop: read a (possibly multi-line) question, send it, render the
streamed answer as it arrives, repeat. Per-turn failures are printed and the loop goes on.

Multi-line input: end a line with a backslash to keep typing.

    [You]:
    Count the words in the following sentence: \\
    You can use Git to save new files.
"""

from __future__ import annotations

import logging
import sys
from contextlib import closing
from typing import Callable, List, Optional, TextIO

from rich.console import Console

from app.adapters.llm_http import InferenceClient
from app.schemas import RetrievalParams
from app.services.payloads import build_query_request
from rag.errors import ProtocolViolation, QueryFailed
from rag.stream.decoder import StreamDecoder

logger = logging.getLogger(__name__)

CONTINUATION = "\\"
YOU_PROMPT = "\n[You]: "
BOT_PROMPT = "\n[Bot]: "


def make_console(file: Optional[TextIO] = None, stderr: bool = False) -> Console:
    """Console that prints text verbatim: no markup, emoji codes, highlighting or wrapping."""
    return Console(
        file=file,
        stderr=stderr,
        markup=False,
        emoji=False,
        highlight=False,
        soft_wrap=True,
    )


class InputBuffer:
    """Accumulates raw input lines until one arrives without the continuation marker."""

    def __init__(self) -> None:
        self._parts: List[str] = []
        self.complete = False

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def lines(self) -> int:
        return len(self._parts)

    def push(self, line: str) -> bool:
        """Add one raw line (with its line break). Returns True once the utterance is final."""
        if self.complete:
            raise ValueError("utterance already finalized")
        body = line.rstrip("\r\n")
        has_break = len(body) != len(line)
        if has_break and body.endswith(CONTINUATION):
            self._parts.append(body[: -len(CONTINUATION)] + "\n")
            return False
        self._parts.append(line)
        self.complete = True
        return True

    def finalize(self) -> str:
        self.complete = True
        return self.text


def read_utterance(readline: Callable[[], str] = sys.stdin.readline) -> str:
    """
    Read one utterance. Raises EOFError when input is closed before anything was typed;
    input closed in the middle of a continuation finalizes what was read so far.
    """
    buf = InputBuffer()
    while True:
        line = readline()
        if line == "":
            if buf.lines == 0:
                raise EOFError("input closed")
            return buf.finalize()
        if buf.push(line):
            return buf.text


class ChatConsole:
    def __init__(
        self,
        client: InferenceClient,
        model: str,
        params: Optional[RetrievalParams] = None,
        *,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
        readline: Optional[Callable[[], str]] = None,
    ):
        self.client = client
        self.model = model
        self.params = params
        self.console = console or make_console()
        self.err_console = err_console or make_console(stderr=True)
        self.readline = readline or sys.stdin.readline

    def report(self, exc: Exception) -> None:
        self.err_console.print(f"Error: {exc}")

    def write_fragment(self, fragment: str) -> None:
        # Straight to the stream: rich would expand tabs and drop control characters.
        out = self.console.file
        out.write(fragment)
        out.flush()

    def ask(self, utterance: str) -> str:
        """Run one turn; fragments are printed as they arrive and the rendered answer is returned."""
        req = build_query_request(utterance, self.model, self.params)
        decoder = StreamDecoder(on_error=self.report)
        rendered: List[str] = []
        with closing(self.client.query(req)) as response:
            for fragment in decoder.decode(self.client.stream_bytes(response)):
                self.write_fragment(fragment)
                rendered.append(fragment)
        logger.debug("Turn finished (reason=%s, skipped=%s)", decoder.finish_reason, len(decoder.errors))
        return "".join(rendered)

    def run(self) -> None:
        """Loop until input is closed (EOFError) or the process is interrupted."""
        while True:
            self.console.print(YOU_PROMPT)
            utterance = read_utterance(self.readline)

            self.console.print(BOT_PROMPT)
            try:
                self.ask(utterance)
            except (QueryFailed, ProtocolViolation) as exc:
                logger.info("Turn failed: %s", exc)
                self.report(exc)
            self.console.print("\n")
