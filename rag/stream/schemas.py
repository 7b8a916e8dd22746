# rag/stream/schemas.py
# Purpose: Pydantic models for one streamed chat-completion chunk and the
# decoded event handed to the console.

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"


class ChunkDelta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Optional[str] = None
    content: Optional[str] = None


class ChunkChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    index: int = 0
    delta: ChunkDelta = Field(default_factory=ChunkDelta)
    # Kept as a plain string: unknown reasons must reach the decoder, not fail validation.
    finish_reason: Optional[str] = None


class ChatCompletionChunk(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    object: Optional[str] = None
    model: Optional[str] = None
    choices: List[ChunkChoice] = Field(..., min_length=1)


@dataclass(frozen=True)
class CompletionChunkEvent:
    content: Optional[str] = None
    finish_reason: Optional[str] = None

    @classmethod
    def from_chunk(cls, chunk: ChatCompletionChunk) -> "CompletionChunkEvent":
        choice = chunk.choices[0]
        return cls(content=choice.delta.content, finish_reason=choice.finish_reason)
