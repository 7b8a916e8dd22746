# app/ingest.py
import argparse
import sys
import logging
from typing import List, Optional, Tuple

from app.adapters.llm_http import InferenceClient
from app.factory import Runtime, build_client, load_runtime
from app.logging_config import setup_logging
from app.schemas import IngestionRequest, StoreCoordinates
from app.services.payloads import build_ingestion_request
from app.setting import Settings, get_settings
from rag.errors import InputError, UploadFailed
from rag.ingest_lib.load_text import Document, load_document
from rag.segment.chunker import Chunk, TokenCounter, chunk_text, get_tokenizer

logger = logging.getLogger(__name__)


def prepare_document(
    path: str,
    settings: Settings,
    *,
    max_tokens: Optional[int] = None,
    tokenizer: Optional[TokenCounter] = None,
) -> Tuple[Document, List[Chunk]]:
    """Load a .txt document and chunk it with the configured budget and tokenizer."""
    doc = load_document(path)
    chunks = chunk_text(
        doc.text,
        max_tokens or settings.chunk_max_tokens,
        tokenizer=tokenizer or get_tokenizer(settings.tokenizer),
        trim=settings.trim_chunks,
    )
    return doc, chunks


def upload_chunks(
    client: InferenceClient,
    chunks: List[Chunk],
    runtime: Runtime,
    store: Optional[StoreCoordinates] = None,
) -> IngestionRequest:
    """Ship every chunk in one request so the service can embed (and store) them."""
    req = build_ingestion_request(chunks, runtime.embedding_model, store if runtime.uses_store else None)
    client.upload(req)
    return req


def main(argv=None):
    ap = argparse.ArgumentParser(description="Chunk a .txt document and upload it for embedding (no chat).")
    ap.add_argument("--file", required=True, help="File with the *.txt extension")
    ap.add_argument("--store-url", default=None, help="vector store URL (defaults to settings)")
    ap.add_argument("--collection", default=None, help="collection name (defaults to the file name)")
    ap.add_argument("--no-store", action="store_true", help="use the plain embeddings endpoint")
    ap.add_argument("--runtime", default=None, help="runtime YAML (models + endpoints)")
    ap.add_argument("--max-tokens", type=int, default=None, help="token budget per chunk")
    args = ap.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level)

    try:
        runtime = load_runtime(args.runtime, mode="chat" if args.no_store else None, settings=settings)
        doc, chunks = prepare_document(args.file, settings, max_tokens=args.max_tokens)
    except (InputError, ValueError, RuntimeError) as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 2

    store = StoreCoordinates(
        url=args.store_url or settings.default_store_url,
        collection_name=args.collection or doc.name,
    )
    client = build_client(runtime, settings)
    try:
        upload_chunks(client, chunks, runtime, store)
    except UploadFailed as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    finally:
        client.close()

    print(f"[done] uploaded {len(chunks)} chunks from {doc.meta['filename']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
