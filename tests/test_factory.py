from pathlib import Path

import pytest

from app.factory import build_client, load_runtime
from app.setting import Settings
from rag.errors import InputError


def _settings(tmp_path, **kw):
    return Settings(runtime_config=tmp_path / "absent.yaml", **kw)


def test_defaults_when_default_config_is_missing(tmp_path):
    rt = load_runtime(settings=_settings(tmp_path))
    assert rt.mode == "rag"
    assert rt.uses_store
    assert rt.embedding_model == "dummy-embedding-model"
    assert rt.chat_model == "dummy-chat-completion-model"
    assert (rt.ingest_path, rt.query_path) == ("/v1/rag/document", "/v1/rag/query")


def test_explicit_config_must_exist(tmp_path):
    with pytest.raises(InputError):
        load_runtime(tmp_path / "nope.yaml", settings=_settings(tmp_path))


def test_chat_mode_uses_plain_endpoints(tmp_path):
    rt = load_runtime(mode="chat", settings=_settings(tmp_path))
    assert not rt.uses_store
    assert (rt.ingest_path, rt.query_path) == ("/v1/embeddings", "/v1/chat/completions")


def test_yaml_overrides_are_merged(tmp_path):
    cfg = tmp_path / "runtime.yaml"
    cfg.write_text(
        "mode: chat\n"
        "models:\n"
        "  chat: llama-3-8b-instruct\n"
        "endpoints:\n"
        "  chat:\n"
        "    query: /api/chat\n",
        encoding="utf-8",
    )
    rt = load_runtime(cfg, settings=_settings(tmp_path))

    assert rt.mode == "chat"
    assert rt.chat_model == "llama-3-8b-instruct"
    assert rt.embedding_model == "dummy-embedding-model"
    assert (rt.ingest_path, rt.query_path) == ("/v1/embeddings", "/api/chat")


def test_non_mapping_config_is_rejected(tmp_path):
    cfg = tmp_path / "runtime.yaml"
    cfg.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(InputError):
        load_runtime(cfg, settings=_settings(tmp_path))


def test_unknown_mode_is_rejected(tmp_path):
    with pytest.raises(ValueError):
        load_runtime(mode="agents", settings=_settings(tmp_path))


def test_build_client_uses_host_and_endpoints(tmp_path):
    settings = _settings(tmp_path, inference_host="http://inference:9000", request_timeout=5)
    rt = load_runtime(mode="chat", settings=settings)

    client = build_client(rt, settings)
    assert client.ingest_url == "http://inference:9000/v1/embeddings"
    assert client.query_url == "http://inference:9000/v1/chat/completions"
    assert client.timeout == 5
    client.close()

    override = build_client(rt, settings, host="http://127.0.0.1:8080")
    assert override.query_url == "http://127.0.0.1:8080/v1/chat/completions"
    override.close()


def test_shipped_runtime_config_loads():
    rt = load_runtime(Path(__file__).resolve().parents[1] / "configs" / "runtime.yaml", settings=Settings())
    assert rt.mode == "rag"
    assert rt.query_path == "/v1/rag/query"
