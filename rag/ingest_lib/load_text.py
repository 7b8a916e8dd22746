import datetime
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

from rag.errors import IOFailure, UnsupportedFormat

TEXT_SUFFIXES = (".txt",)
_NAME_RE = re.compile(r"[^0-9A-Za-z_-]+")


@dataclass(frozen=True)
class Document:
    text: str
    name: str
    path: str
    meta: Dict[str, str] = field(default_factory=dict)


def document_name(path: str | Path) -> str:
    """Collection-safe logical name derived from the file stem."""
    stem = Path(path).stem
    name = _NAME_RE.sub("_", stem).strip("_")
    return name or "document"


def load_document(path: str | Path) -> Document:
    """
    Read a plain-text document from disk.

    Raises:
        IOFailure: the file does not exist or cannot be read.
        UnsupportedFormat: the file is not a `.txt` file or is not valid UTF-8 text.
    """
    p = Path(path)
    if not p.exists():
        raise IOFailure(f"{p} does not exist")
    if not p.is_file():
        raise IOFailure(f"{p} is not a file")
    if p.suffix.lower() not in TEXT_SUFFIXES:
        raise UnsupportedFormat(f"{p} is not a text file", details="expected a *.txt file")

    try:
        raw = p.read_bytes()
    except OSError as exc:
        raise IOFailure(f"failed to read {p}", details=str(exc)) from exc

    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise UnsupportedFormat(f"{p} is not UTF-8 text", details=str(exc)) from exc
    if "\x00" in text:
        raise UnsupportedFormat(f"{p} looks like a binary file")

    stat = os.stat(p)
    meta = {
        "filename": p.name,
        "path": str(p),
        "size_bytes": str(stat.st_size),
        "mtime": datetime.datetime.fromtimestamp(stat.st_mtime).isoformat(),
    }
    return Document(text=text, name=document_name(p), path=str(p), meta=meta)
