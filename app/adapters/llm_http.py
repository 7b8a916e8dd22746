# app/adapters/llm_http.py
import logging
from typing import Iterator, Optional

import requests

from app.schemas import ChatRequest, IngestionRequest
from rag.errors import QueryFailed, UploadFailed

logger = logging.getLogger(__name__)

JSON_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


class InferenceClient:
    """
    HTTP transport for an OpenAI-compatible inference service.

    Endpoints are passed in at construction; one requests.Session is reused for
    the upload and every query. No retries: failures surface immediately.
    """

    def __init__(
        self,
        host: str,
        ingest_path: str = "/v1/rag/document",
        query_path: str = "/v1/rag/query",
        timeout: float = 120.0,
        session: Optional[requests.Session] = None,
    ):
        self.host = host.rstrip("/")
        self.ingest_url = f"{self.host}{ingest_path}"
        self.query_url = f"{self.host}{query_path}"
        self.timeout = timeout
        self.session = session or requests.Session()

    def _error_message(self, r: requests.Response) -> str:
        # Try to extract the service's JSON error; otherwise show plain text
        try:
            body = r.json()
        except ValueError:
            return (r.text or "").strip()[:200]
        if isinstance(body, dict):
            err = body.get("error")
            if isinstance(err, dict):
                err = err.get("message") or err
            if err:
                return str(err)
        return str(body)[:200]

    def upload(self, req: IngestionRequest) -> requests.Response:
        """Send the chunks in one blocking call. Any completed HTTP exchange counts as success."""
        logger.info("Uploading %s chunks to %s", len(req.input), self.ingest_url)
        try:
            r = self.session.post(
                self.ingest_url,
                json=req.to_body(),
                headers=JSON_HEADERS,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UploadFailed("Ingestion request failed", url=self.ingest_url, details=str(exc)) from exc

        if r.status_code >= 400:
            logger.warning(
                "Ingestion endpoint answered %s: %s", r.status_code, self._error_message(r)
            )
        return r

    def query(self, req: ChatRequest) -> requests.Response:
        """POST a chat request and return the open, unread streaming response."""
        try:
            r = self.session.post(
                self.query_url,
                json=req.to_body(),
                headers=JSON_HEADERS,
                timeout=self.timeout,
                stream=True,
            )
        except requests.RequestException as exc:
            raise QueryFailed("Query request failed", url=self.query_url, details=str(exc)) from exc

        if r.status_code >= 400:
            try:
                message = self._error_message(r)
            finally:
                r.close()
            raise QueryFailed(
                "Query rejected by the inference service",
                url=self.query_url,
                status_code=r.status_code,
                details=message,
            )
        return r

    def stream_bytes(self, r: requests.Response) -> Iterator[bytes]:
        """
        Yield body bytes as they arrive; a broken connection becomes QueryFailed.

        With `chunk_size=None` each chunk of a chunked (streaming) response is
        handed over as soon as it is read. A body delimited by connection close
        is only delivered in buffered reads.
        """
        try:
            for data in r.iter_content(chunk_size=None):
                if data:
                    yield data
        except requests.RequestException as exc:
            raise QueryFailed("Stream interrupted", url=self.query_url, details=str(exc)) from exc

    def close(self) -> None:
        self.session.close()
