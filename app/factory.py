"""
app/factory.py

Factory to build the inference client from the runtime YAML config.
- Swaps between the retrieval-augmented endpoints and the plain chat endpoints by config (no code edits).
- Endpoints and model names are configuration handed to the transport, never constants inside it.
- A missing default config falls back to built-in defaults; an explicitly named file must exist.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from app.adapters.llm_http import InferenceClient
from app.setting import Settings, get_settings
from rag.errors import InputError

MODES = ("rag", "chat")

DEFAULT_RUNTIME: Dict[str, Any] = {
    "mode": "rag",
    "models": {
        "embedding": "dummy-embedding-model",
        "chat": "dummy-chat-completion-model",
    },
    "endpoints": {
        "rag": {"ingest": "/v1/rag/document", "query": "/v1/rag/query"},
        "chat": {"ingest": "/v1/embeddings", "query": "/v1/chat/completions"},
    },
}


@dataclass(frozen=True)
class Runtime:
    mode: str
    embedding_model: str
    chat_model: str
    ingest_path: str
    query_path: str

    @property
    def uses_store(self) -> bool:
        return self.mode == "rag"


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def _load_cfg(cfg_path: str | Path, required: bool) -> Dict[str, Any]:
    p = Path(cfg_path).expanduser()
    if not p.exists():
        if required:
            raise InputError(f"Runtime config not found: {p}")
        return {}
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InputError(f"Runtime config must be a mapping: {p}")
    return data


def load_runtime(cfg_path: Optional[str | Path] = None, mode: Optional[str] = None,
                 settings: Optional[Settings] = None) -> Runtime:
    """
    Resolve models and endpoint paths.
    `cfg_path` given explicitly must exist; otherwise settings.runtime_config is optional.
    `mode` overrides the mode from the config file.
    """
    settings = settings or get_settings()
    required = cfg_path is not None
    cfg = _merge(DEFAULT_RUNTIME, _load_cfg(cfg_path or settings.runtime_config, required))

    mode = (mode or cfg.get("mode") or "rag").lower()
    if mode not in MODES:
        raise ValueError(f"Unknown mode: {mode} (expected one of {', '.join(MODES)})")

    endpoints = cfg["endpoints"].get(mode) or {}
    if not endpoints.get("ingest") or not endpoints.get("query"):
        raise ValueError(f"Runtime config lacks endpoints.{mode}.ingest / endpoints.{mode}.query")

    models = cfg.get("models") or {}
    return Runtime(
        mode=mode,
        embedding_model=str(models.get("embedding")),
        chat_model=str(models.get("chat")),
        ingest_path=str(endpoints["ingest"]),
        query_path=str(endpoints["query"]),
    )


def build_client(runtime: Runtime, settings: Optional[Settings] = None,
                 host: Optional[str] = None) -> InferenceClient:
    """Build the HTTP transport for the resolved runtime."""
    settings = settings or get_settings()
    return InferenceClient(
        host=host or settings.inference_host,
        ingest_path=runtime.ingest_path,
        query_path=runtime.query_path,
        timeout=settings.request_timeout,
    )
