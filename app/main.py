"""
app/main.py

Command-line entrypoint: chat with a local text document.
- Chunks the document (token-aware) and uploads the chunks once so the inference service
  can compute and store their embeddings.
- Then loops: read a question, stream the answer back, repeat until input closes.

Example:
  python -m app.main --file paris.txt
  python -m app.main --file paris.txt --store-url http://localhost:6333 --limit 5
"""

import argparse
import logging
from typing import Optional

from rich.console import Console

from app.factory import build_client, load_runtime
from app.ingest import prepare_document, upload_chunks
from app.logging_config import setup_logging
from app.schemas import RetrievalParams, StoreCoordinates
from app.services.console import ChatConsole, make_console
from app.setting import Settings, get_settings
from rag.errors import InputError, UploadFailed

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UPLOAD_FAILED = 1
EXIT_INPUT_ERROR = 2
EXIT_INTERRUPTED = 130


def _non_negative(value: str) -> int:
    n = int(value)
    if n < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return n


def _positive(value: str) -> int:
    n = int(value)
    if n <= 0:
        raise argparse.ArgumentTypeError("must be > 0")
    return n


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    ap = argparse.ArgumentParser(
        prog="doc-chat",
        description="Ask questions about a local text document through a remote RAG service.",
        epilog="Example:\n  doc-chat --file paris.txt\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument("--file", required=True, metavar="FILE", help="File with the *.txt extension")
    ap.add_argument("--store-url", default=settings.default_store_url, help="vector store URL")
    ap.add_argument("--limit", type=_non_negative, default=settings.default_limit,
                    help="max supporting chunks retrieved per query")
    ap.add_argument("--collection", default=None, help="collection name (defaults to the file name)")
    ap.add_argument("--no-store", action="store_true",
                    help="plain chat: /v1/embeddings + /v1/chat/completions, no store fields")
    ap.add_argument("--host", default=None, help="inference service base URL")
    ap.add_argument("--max-tokens", type=_positive, default=None, help="token budget per chunk")
    ap.add_argument("--runtime", default=None, help="runtime YAML (models + endpoints)")
    return ap


def _session(args: argparse.Namespace, settings: Settings, console: Console, err_console: Console) -> int:
    try:
        runtime = load_runtime(args.runtime, mode="chat" if args.no_store else None, settings=settings)
        console.print(f"[INFO] Document: {args.file}\n")
        console.print("[+] Chunking the document ...")
        doc, chunks = prepare_document(args.file, settings, max_tokens=args.max_tokens)
    except (InputError, ValueError, RuntimeError) as exc:
        err_console.print(f"Error: {exc}")
        return EXIT_INPUT_ERROR

    store = None
    params = None
    if runtime.uses_store:
        store = StoreCoordinates(url=args.store_url, collection_name=args.collection or doc.name)
        params = RetrievalParams(store=store, limit=args.limit)

    client = build_client(runtime, settings, host=args.host)
    try:
        console.print("[+] Computing the embeddings for the document ...")
        upload_chunks(client, chunks, runtime, store)
        logger.info("Uploaded %s chunks of %s", len(chunks), doc.name)

        ChatConsole(client, runtime.chat_model, params, console=console, err_console=err_console).run()
    except UploadFailed as exc:
        err_console.print(f"Error: {exc}")
        return EXIT_UPLOAD_FAILED
    except EOFError:
        return EXIT_OK
    finally:
        client.close()
    return EXIT_OK


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    console = make_console()
    err_console = make_console(stderr=True)
    try:
        return _session(args, settings, console, err_console)
    except KeyboardInterrupt:
        console.print("")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    raise SystemExit(main())
