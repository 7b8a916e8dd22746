# app/schemas.py
# Purpose: Pydantic models for the outbound request bodies, so the JSON contract with the
# inference service stays stable. Optional store fields are dropped when unset.

from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class StoreCoordinates(BaseModel):
    url: str
    collection_name: str


class RetrievalParams(BaseModel):
    store: Optional[StoreCoordinates] = None
    limit: Optional[int] = Field(default=None, ge=0)


class IngestionRequest(BaseModel):
    model: str
    input: List[str]
    store_url: Optional[str] = None
    collection_name: Optional[str] = None

    def to_body(self) -> dict:
        return self.model_dump(exclude_none=True)


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"] = "user"
    content: str


class ChatRequest(BaseModel):
    model: str
    messages: List[ChatMessage]
    stream: bool = True
    store_url: Optional[str] = None
    collection_name: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=0)

    def to_body(self) -> dict:
        return self.model_dump(exclude_none=True)
