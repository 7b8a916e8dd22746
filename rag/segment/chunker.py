# rag/segment/chunker.py
import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterator, List, Optional, Protocol, Tuple

import tiktoken

from rag.ingest_lib.load_text import Document

logger = logging.getLogger(__name__)


DEFAULT_TOKENIZER = os.environ.get("DOCCHAT_TOKENIZER", "cl100k_base")

# Natural break points, coarsest first. A boundary sits right after each match.
BOUNDARY_LEVELS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    ("paragraph", re.compile(r"\n[ \t]*\n\s*")),
    ("line", re.compile(r"\n")),
    ("sentence", re.compile(r"[.!?][\"'’”)\]]*\s+")),
    ("word", re.compile(r"\s+")),
)


class TokenCounter(Protocol):
    name: str

    def count(self, text: str) -> int:
        ...


class TiktokenCounter:
    def __init__(self, encoding: "tiktoken.Encoding"):
        self.encoding = encoding
        self.name = encoding.name

    def count(self, text: str) -> int:
        if not text:
            return 0
        # Special-token strings inside documents are ordinary text here.
        return len(self.encoding.encode(text, disallowed_special=()))


class HFTokenCounter:
    def __init__(self, tokenizer, name: str):
        self.tokenizer = tokenizer
        self.name = name

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self.tokenizer(text, add_special_tokens=False)["input_ids"])


@lru_cache(maxsize=4)
def get_tokenizer(name: Optional[str] = None) -> TokenCounter:
    """
    Load and cache a token counter.

    `name` is either a tiktoken encoding (cl100k_base, o200k_base, ...) or a
    Hugging Face tokenizer id, which needs the `hf` extra (transformers).
    """
    name = name or DEFAULT_TOKENIZER
    if name in tiktoken.list_encoding_names():
        try:
            return TiktokenCounter(tiktoken.get_encoding(name))
        except (ValueError, OSError) as exc:
            raise RuntimeError(f"Could not load tiktoken encoding '{name}'.") from exc

    try:
        from transformers import AutoTokenizer
    except ImportError as exc:
        raise RuntimeError(
            f"'{name}' is not a tiktoken encoding and transformers is not installed. "
            "Install the hf extra to use Hugging Face tokenizers."
        ) from exc

    try:
        tok = AutoTokenizer.from_pretrained(name, use_fast=True)
    except (ValueError, OSError) as exc:
        raise RuntimeError(f"No tokenizer available for '{name}'.") from exc

    # Disable max length warnings; chunks are bounded by the chunker itself.
    if getattr(tok, "model_max_length", None) and tok.model_max_length < 10**6:
        tok.model_max_length = 10**6
    return HFTokenCounter(tok, name)


@dataclass(frozen=True)
class Chunk:
    index: int
    text: str
    n_tokens: int
    char_start: int
    char_end: int


class TextChunker:
    """
    Greedy, boundary-aware splitter bounded by a token budget.

    Adjacent segments of the coarsest boundary level are merged while the
    merged text stays within `max_tokens`; a segment that is too large on its
    own is split again at the next finer level, down to single characters.
    """

    def __init__(self, max_tokens: int = 100, *, tokenizer: Optional[TokenCounter] = None, trim: bool = True):
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        self.max_tokens = max_tokens
        self.tokenizer = tokenizer or get_tokenizer()
        self.trim = trim

    def _measure(self, text: str) -> int:
        return self.tokenizer.count(text.strip() if self.trim else text)

    def _fits(self, text: str, start: int, end: int) -> bool:
        return self._measure(text[start:end]) <= self.max_tokens

    @staticmethod
    def _split(text: str, start: int, end: int, level: int) -> List[Tuple[int, int]]:
        pattern = BOUNDARY_LEVELS[level][1]
        cuts = [start]
        for m in pattern.finditer(text, start, end):
            if start < m.end() < end and m.end() != cuts[-1]:
                cuts.append(m.end())
        cuts.append(end)
        return list(zip(cuts[:-1], cuts[1:]))

    def _longest_fit(self, text: str, start: int, end: int) -> int:
        """Largest `e` in [start, end) with text[start:e] within budget, by bisection."""
        lo, hi = start, end
        while hi - lo > 1:
            mid = (lo + hi) // 2
            if self._fits(text, start, mid):
                lo = mid
            else:
                hi = mid
        return lo

    def _char_spans(self, text: str, start: int, end: int) -> Iterator[Tuple[int, int]]:
        s = start
        while s < end:
            if self._fits(text, s, end):
                yield s, end
                return
            e = self._longest_fit(text, s, end)
            if e == s:
                e = s + 1
                logger.warning(
                    "Character %r alone exceeds the %s token budget; emitting it as its own chunk",
                    text[s:e],
                    self.max_tokens,
                )
            yield s, e
            s = e

    def _spans(self, text: str, start: int, end: int, level: int) -> Iterator[Tuple[int, int]]:
        if self._fits(text, start, end):
            yield start, end
            return

        if level >= len(BOUNDARY_LEVELS):
            yield from self._char_spans(text, start, end)
            return

        pieces = self._split(text, start, end, level)
        if len(pieces) < 2:
            yield from self._spans(text, start, end, level + 1)
            return

        current: Optional[Tuple[int, int]] = None
        for s, e in pieces:
            if current is not None:
                if self._fits(text, current[0], e):
                    current = (current[0], e)
                    continue
                yield current
                current = None

            if self._fits(text, s, e):
                current = (s, e)
            else:
                yield from self._spans(text, s, e, level + 1)

        if current is not None:
            yield current

    def split(self, text: str) -> List[Chunk]:
        chunks: List[Chunk] = []
        if not text:
            return chunks

        for start, end in self._spans(text, 0, len(text), 0):
            piece = text[start:end]
            if self.trim:
                stripped = piece.strip()
                start += len(piece) - len(piece.lstrip())
                end = start + len(stripped)
                piece = stripped
            if not piece.strip():
                continue
            chunks.append(
                Chunk(
                    index=len(chunks),
                    text=piece,
                    n_tokens=self.tokenizer.count(piece),
                    char_start=start,
                    char_end=end,
                )
            )

        logger.info(
            "Chunked %s chars into %s chunks (max %s tokens, tokenizer %s)",
            len(text),
            len(chunks),
            self.max_tokens,
            getattr(self.tokenizer, "name", "?"),
        )
        return chunks


def chunk_text(
    text: str,
    max_tokens: int = 100,
    *,
    tokenizer: Optional[TokenCounter] = None,
    trim: bool = True,
) -> List[Chunk]:
    """Split `text` into ordered chunks of at most `max_tokens` tokens each."""
    return TextChunker(max_tokens, tokenizer=tokenizer, trim=trim).split(text)


def chunk_records(
    doc: Document,
    max_tokens: int = 100,
    *,
    tokenizer: Optional[TokenCounter] = None,
    trim: bool = True,
) -> List[Dict]:
    """Return JSON-ready chunk records for a document, ids suffixed `_chunkNNNN`."""
    records: List[Dict] = []
    for chunk in chunk_text(doc.text, max_tokens, tokenizer=tokenizer, trim=trim):
        records.append(
            {
                "id": f"{doc.name}_chunk{chunk.index:04d}",
                "doc_id": doc.name,
                "chunk_index": chunk.index,
                "text": chunk.text,
                "n_tokens": chunk.n_tokens,
                "char_start": chunk.char_start,
                "char_end": chunk.char_end,
            }
        )
    return records
