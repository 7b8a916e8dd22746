# tasks.py
# Invoke is the source of truth.
# Primary:
#   invoke chat --file paris.txt   -> chunk + upload, then the interactive loop
# Helpers:
#   invoke chunk --file paris.txt | ingest --file paris.txt | test | clean

from invoke import task
import os, sys, subprocess
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

PY         = sys.executable
HOST       = os.environ.get("DOCCHAT_INFERENCE_HOST", "http://localhost:8080")
STORE_URL  = os.environ.get("DOCCHAT_DEFAULT_STORE_URL", "http://localhost:6333")
RUNTIME    = Path(os.environ.get("DOCCHAT_RUNTIME_CONFIG", "configs/runtime.yaml"))
CHUNKS_DIR = Path("data/chunks")


def _run(cmd, env: dict | None = None, **kwargs):
    """Run shell cmd with repo root on PYTHONPATH, plus optional env overrides."""
    base = os.environ.copy()
    root = str(Path(".").resolve())
    base["PYTHONPATH"] = f'{root}{os.pathsep}{base.get("PYTHONPATH","")}'
    if env:
        base.update(env)
    print(f"$ {cmd}")
    return subprocess.run(cmd, shell=True, check=True, env=base, **kwargs)


def _require_txt(file: str) -> Path:
    p = Path(file)
    if not p.exists():
        raise SystemExit(f"{p} does not exist")
    if p.suffix.lower() != ".txt":
        raise SystemExit(f"{p} is not a *.txt file")
    return p


@task
def chat(c, file, limit=3, store_url=STORE_URL, no_store=False, max_tokens=None):
    """Chunk + upload FILE, then chat about it."""
    _require_txt(file)
    flags = f"--store-url {store_url} --limit {limit} --host {HOST} --runtime {RUNTIME}"
    if no_store:
        flags += " --no-store"
    if max_tokens:
        flags += f" --max-tokens {max_tokens}"
    # pty so the streamed answer reaches the terminal unbuffered
    c.run(f'{PY} -m app.main --file "{file}" {flags}', pty=True)


@task
def chunk(c, file, max_tokens=100, tokenizer="cl100k_base"):
    """Chunk FILE -> data/chunks/<name>.jsonl for inspection."""
    p = _require_txt(file)
    CHUNKS_DIR.mkdir(parents=True, exist_ok=True)
    out = CHUNKS_DIR / f"{p.stem}.jsonl"
    _run(f'{PY} -m app.chunk --file "{p}" --out "{out}" --max_tokens {max_tokens} --tokenizer {tokenizer}')


@task
def ingest(c, file, store_url=STORE_URL, no_store=False):
    """Upload FILE's chunks without starting the chat loop."""
    _require_txt(file)
    flags = f"--store-url {store_url} --runtime {RUNTIME}"
    if no_store:
        flags += " --no-store"
    _run(f'{PY} -m app.ingest --file "{file}" {flags}', env={"DOCCHAT_INFERENCE_HOST": HOST})


@task
def test(c, k=None):
    """Run the pytest suite (optionally -k EXPR)."""
    expr = f' -k "{k}"' if k else ""
    _run(f"{PY} -m pytest -q{expr}")


@task
def clean(c):
    """Remove chunk dumps (safe)."""
    if CHUNKS_DIR.exists():
        for p in CHUNKS_DIR.glob("*.jsonl"):
            p.unlink()
            print("deleted", p)
