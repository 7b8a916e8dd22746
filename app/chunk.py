# app/chunk.py
import argparse
import json
import sys

from app.setting import get_settings
from rag.errors import InputError
from rag.ingest_lib.load_text import load_document
from rag.segment.chunker import chunk_records, get_tokenizer


def write_jsonl(records, out) -> None:
    for rec in records:
        out.write(json.dumps(rec, ensure_ascii=False) + "\n")


def main(argv=None):
    settings = get_settings()
    ap = argparse.ArgumentParser(description="Chunk a .txt document into JSONL (inspect before uploading)")
    ap.add_argument("--file", required=True)
    ap.add_argument("--out", dest="outp", default=None, help="output path (defaults to stdout)")
    ap.add_argument("--max_tokens", type=int, default=settings.chunk_max_tokens)
    ap.add_argument("--tokenizer", default=settings.tokenizer,
                    help="tiktoken encoding or HF tokenizer id (defaults to cl100k_base).")
    args = ap.parse_args(argv)

    try:
        doc = load_document(args.file)
    except InputError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 2

    records = chunk_records(
        doc,
        max_tokens=args.max_tokens,
        tokenizer=get_tokenizer(args.tokenizer),
        trim=settings.trim_chunks,
    )

    if args.outp:
        with open(args.outp, "w", encoding="utf-8") as f:
            write_jsonl(records, f)
        print(f"[chunk] {len(records)} chunks -> {args.outp}", file=sys.stderr)
    else:
        write_jsonl(records, sys.stdout)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
