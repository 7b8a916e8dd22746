import pytest
import requests

from app.adapters.llm_http import JSON_HEADERS, InferenceClient
from app.schemas import RetrievalParams, StoreCoordinates
from app.services.payloads import build_ingestion_request, build_query_request
from rag.errors import QueryFailed, UploadFailed
from rag.segment.chunker import Chunk


class FakeResponse:
    def __init__(self, status_code=200, json_body=None, text="", pieces=(), broken=False):
        self.status_code = status_code
        self._json = json_body
        self.text = text
        self.pieces = list(pieces)
        self.broken = broken
        self.closed = False

    def json(self):
        if self._json is None:
            raise ValueError("no json")
        return self._json

    def iter_content(self, chunk_size=None):
        yield from self.pieces
        if self.broken:
            raise requests.exceptions.ChunkedEncodingError("connection reset")

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response or FakeResponse()
        self.exc = exc
        self.calls = []
        self.closed = False

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.exc:
            raise self.exc
        return self.response

    def close(self):
        self.closed = True


def _client(session, **kw):
    return InferenceClient("http://localhost:8080/", session=session, **kw)


def _store():
    return StoreCoordinates(url="http://localhost:6333", collection_name="paris")


def test_ingestion_request_keeps_chunk_order_and_store_fields():
    chunks = [Chunk(0, "first", 1, 0, 5), Chunk(1, "second", 1, 6, 12)]
    req = build_ingestion_request(chunks, "dummy-embedding-model", _store())
    assert req.to_body() == {
        "model": "dummy-embedding-model",
        "input": ["first", "second"],
        "store_url": "http://localhost:6333",
        "collection_name": "paris",
    }

    plain = build_ingestion_request(["a", "b"], "dummy-embedding-model")
    assert plain.to_body() == {"model": "dummy-embedding-model", "input": ["a", "b"]}


def test_query_request_is_a_single_streaming_user_message():
    req = build_query_request("Where?\n", "dummy-chat-completion-model", RetrievalParams(store=_store(), limit=0))
    body = req.to_body()
    assert body["messages"] == [{"role": "user", "content": "Where?\n"}]
    assert body["stream"] is True
    assert body["limit"] == 0
    assert body["collection_name"] == "paris"


def test_upload_posts_json_to_the_ingestion_endpoint():
    session = FakeSession()
    client = _client(session, ingest_path="/v1/embeddings")
    req = build_ingestion_request(["x"], "dummy-embedding-model")

    client.upload(req)

    url, kwargs = session.calls[0]
    assert url == "http://localhost:8080/v1/embeddings"
    assert kwargs["json"] == {"model": "dummy-embedding-model", "input": ["x"]}
    assert kwargs["headers"] == JSON_HEADERS
    assert kwargs["timeout"] == 120.0


def test_upload_accepts_error_status(caplog):
    session = FakeSession(FakeResponse(500, json_body={"error": {"message": "model not loaded"}}))
    client = _client(session)

    with caplog.at_level("WARNING"):
        r = client.upload(build_ingestion_request(["x"], "m"))

    assert r.status_code == 500
    assert "model not loaded" in caplog.text


def test_upload_transport_failure_raises_upload_failed():
    session = FakeSession(exc=requests.exceptions.ConnectionError("refused"))
    client = _client(session)

    with pytest.raises(UploadFailed) as info:
        client.upload(build_ingestion_request(["x"], "m"))

    assert "refused" in str(info.value)
    assert "http://localhost:8080/v1/rag/document" in str(info.value)


def test_query_streams_from_the_chat_endpoint():
    response = FakeResponse(pieces=[b"a", b"", b"b"])
    session = FakeSession(response)
    client = _client(session, query_path="/v1/chat/completions")

    r = client.query(build_query_request("hi", "m"))

    url, kwargs = session.calls[0]
    assert url == "http://localhost:8080/v1/chat/completions"
    assert kwargs["stream"] is True
    assert kwargs["headers"]["Accept"] == "application/json"
    assert list(client.stream_bytes(r)) == [b"a", b"b"]


def test_query_error_status_raises_and_closes_response():
    response = FakeResponse(503, text="  service warming up  ")
    client = _client(FakeSession(response))

    with pytest.raises(QueryFailed) as info:
        client.query(build_query_request("hi", "m"))

    assert info.value.status_code == 503
    assert info.value.details == "service warming up"
    assert response.closed


def test_query_transport_failure_raises_query_failed():
    client = _client(FakeSession(exc=requests.exceptions.Timeout("read timed out")))
    with pytest.raises(QueryFailed) as info:
        client.query(build_query_request("hi", "m"))
    assert "read timed out" in str(info.value)


def test_interrupted_stream_raises_query_failed():
    response = FakeResponse(pieces=[b"{"], broken=True)
    client = _client(FakeSession(response))

    got = []
    with pytest.raises(QueryFailed):
        for data in client.stream_bytes(response):
            got.append(data)
    assert got == [b"{"]


def test_close_closes_the_session():
    session = FakeSession()
    _client(session).close()
    assert session.closed
