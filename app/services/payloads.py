"""
Request builders for the two calls the client makes.
One builder per call; store coordinates and the retrieval limit are optional,
so the same code serves plain chat and retrieval-augmented chat.
"""

from typing import Optional, Sequence, Union

from app.schemas import ChatMessage, ChatRequest, IngestionRequest, RetrievalParams, StoreCoordinates
from rag.segment.chunker import Chunk


def build_ingestion_request(
    chunks: Sequence[Union[Chunk, str]],
    model: str,
    store: Optional[StoreCoordinates] = None,
) -> IngestionRequest:
    """Wrap chunks, in document order, into one ingestion request."""
    texts = [c.text if isinstance(c, Chunk) else str(c) for c in chunks]
    return IngestionRequest(
        model=model,
        input=texts,
        store_url=store.url if store else None,
        collection_name=store.collection_name if store else None,
    )


def build_query_request(
    utterance: str,
    model: str,
    params: Optional[RetrievalParams] = None,
) -> ChatRequest:
    """Single user message with streaming enabled, plus retrieval parameters when given."""
    store = params.store if params else None
    return ChatRequest(
        model=model,
        messages=[ChatMessage(role="user", content=utterance)],
        stream=True,
        store_url=store.url if store else None,
        collection_name=store.collection_name if store else None,
        limit=params.limit if params else None,
    )
