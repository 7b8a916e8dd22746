"""
app/setting.py

Central configuration for the document chat client.
- Process-level knobs: inference host, timeouts, chunking budget, tokenizer, logging.
- Uses pydantic-settings so values can be overridden via DOCCHAT_* environment variables or a `.env` file.
- Model names and endpoint paths live in the runtime YAML loaded by app/factory.py.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings model for the client. Values can be customized by setting
    environment variables (DOCCHAT_INFERENCE_HOST, ...) or editing `.env`.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCCHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---------- Inference service ----------
    inference_host: str = "http://localhost:8080"         # Remote embeddings / chat service
    request_timeout: float = Field(default=120.0, gt=0)    # Seconds; applies to connect and between reads
    runtime_config: Path = Path("configs/runtime.yaml")    # Models + endpoint paths

    # ---------- Chunking ----------
    chunk_max_tokens: int = Field(default=100, ge=1)       # Token budget per chunk
    tokenizer: str = "cl100k_base"                         # tiktoken encoding or HF tokenizer id
    trim_chunks: bool = True                               # Strip whitespace at chunk edges

    # ---------- Retrieval defaults ----------
    default_store_url: str = "http://localhost:6333"       # Vector store the service writes to
    default_limit: int = Field(default=3, ge=0)            # Supporting chunks per query

    # ---------- Logging ----------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance shared by the CLI entry points."""
    return Settings()
