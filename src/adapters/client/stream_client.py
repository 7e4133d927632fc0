"""
adapters.client.stream_client - Client for the streaming search endpoint.

StreamReconstructor is the transport-free part: it turns the growing
response body into callback invocations and one aggregate result.
SearchStreamClient drives it over HTTP with requests.

Usage:
    client = SearchStreamClient("http://localhost:8000")
    result = client.search(
        "wireless earbuds",
        anon_token=token,
        callbacks=SearchCallbacks(on_category=lambda c: print(c["label"])),
    )
"""

from __future__ import annotations

import codecs
import json
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import requests
from urllib3.exceptions import ReadTimeoutError

from adapters.client.sse_reader import Frame, SSEReader

logger = logging.getLogger(__name__)

EVENT_STREAM = "text/event-stream"
DEFAULT_TIMEOUT_SECONDS = 120.0
TIMEOUT_MESSAGE = "Search request timed out. Please try again."


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class SearchError(Exception):
    """Base class for client-side search failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthRequiredError(SearchError):
    pass


class RateLimitSearchError(SearchError):
    def __init__(
        self,
        message: str,
        remaining: int,
        reset_at: Optional[str],
        limit: int,
        is_guest: bool,
    ):
        super().__init__(message, status_code=429)
        self.remaining = remaining
        self.reset_at = reset_at
        self.limit = limit
        self.is_guest = is_guest


class SearchNetworkError(SearchError):
    pass


class SearchTimeoutError(SearchError):
    pass


class StreamFailedError(SearchError):
    """The server ended the stream with an error frame."""


# ---------------------------------------------------------------------------
# Callbacks and result
# ---------------------------------------------------------------------------

@dataclass
class SearchCallbacks:
    on_status: Optional[Callable[[str], None]] = None
    on_category: Optional[Callable[[dict[str, Any]], None]] = None
    on_summary: Optional[Callable[[dict[str, Any]], None]] = None
    on_done: Optional[Callable[[dict[str, Any]], None]] = None
    on_error: Optional[Callable[[str], None]] = None


@dataclass
class AgentSearchResult:
    """Everything a non-streaming caller needs once the search has finished."""
    conversation_id: str = ""
    message_id: str = ""
    summary: str = ""
    recommendations: list[dict[str, Any]] = field(default_factory=list)
    follow_up_question: Optional[str] = None
    follow_up_options: list[str] = field(default_factory=list)
    categories: list[dict[str, Any]] = field(default_factory=list)
    rate_limit: Optional[dict[str, Any]] = None
    # False when the body ended without a done frame
    complete: bool = False


class StreamAccumulator:
    """Applies frames to callbacks and to the aggregate result."""

    def __init__(self, callbacks: Optional[SearchCallbacks] = None, conversation_id: str = ""):
        self.callbacks = callbacks or SearchCallbacks()
        self.result = AgentSearchResult(conversation_id=conversation_id)
        self.error_message: Optional[str] = None

    def apply(self, frame: Frame) -> None:
        try:
            data = json.loads(frame.data)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed %s frame: %.80s", frame.event, frame.data)
            return
        if not isinstance(data, dict):
            logger.warning("Skipping %s frame with non-object data", frame.event)
            return

        cb = self.callbacks
        if frame.event == "status":
            if cb.on_status:
                cb.on_status(data.get("text", ""))
        elif frame.event == "category":
            self.result.categories.append(data)
            if cb.on_category:
                cb.on_category(data)
        elif frame.event == "summary":
            self.result.summary = data.get("content") or ""
            self.result.recommendations = list(data.get("recommendations") or [])
            self.result.follow_up_question = data.get("followUpQuestion")
            self.result.follow_up_options = list(data.get("followUpOptions") or [])
            if cb.on_summary:
                cb.on_summary(data)
        elif frame.event == "done":
            self.result.conversation_id = data.get("conversationId") or self.result.conversation_id
            self.result.message_id = data.get("messageId") or ""
            self.result.rate_limit = data.get("rateLimit")
            self.result.complete = True
            if cb.on_done:
                cb.on_done(data)
        elif frame.event == "error":
            self.error_message = data.get("message") or "Search failed. Please try again."
            if cb.on_error:
                cb.on_error(self.error_message)
        else:
            logger.debug("Ignoring unknown event '%s'", frame.event)


class StreamReconstructor:
    """Rebuilds the event sequence from a transport that only reports progress.

    Call on_progress() with the cumulative body each time the transport
    reports progress, then on_complete() exactly once.
    """

    def __init__(
        self,
        callbacks: Optional[SearchCallbacks] = None,
        is_guest: bool = False,
        conversation_id: str = "",
    ):
        self._reader = SSEReader()
        self._accumulator = StreamAccumulator(callbacks, conversation_id)
        self._is_guest = is_guest

    @property
    def result(self) -> AgentSearchResult:
        return self._accumulator.result

    def on_progress(self, full_text: str) -> None:
        for frame in self._reader.feed(full_text):
            self._accumulator.apply(frame)

    def on_complete(
        self, status_code: int, content_type: str, body: str,
    ) -> AgentSearchResult:
        """Finish the stream and return the aggregate result.

        Raises:
            RateLimitSearchError, AuthRequiredError, SearchError: For JSON
                error responses sent instead of a stream.
            StreamFailedError: If the stream ended with an error frame.
        """
        self.on_progress(body)
        for frame in self._reader.close():
            self._accumulator.apply(frame)

        if EVENT_STREAM not in (content_type or ""):
            self._raise_for_json_error(status_code, body)

        if self._accumulator.error_message is not None:
            raise StreamFailedError(self._accumulator.error_message, status_code)
        if not self._accumulator.result.complete:
            logger.warning("Search stream ended before a done frame; result is partial")
        return self._accumulator.result

    def _raise_for_json_error(self, status_code: int, body: str) -> None:
        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            if status_code >= 400:
                raise SearchError(f"Search failed ({status_code})", status_code)
            return
        if not isinstance(data, dict):
            if status_code >= 400:
                raise SearchError(f"Search failed ({status_code})", status_code)
            return

        code = data.get("code")
        if code == "rate_limited":
            raise RateLimitSearchError(
                data.get("message") or "Rate limit exceeded",
                remaining=data.get("remaining") or 0,
                reset_at=data.get("reset_at"),
                limit=data.get("limit") or 20,
                is_guest=self._is_guest,
            )
        if code == "auth_required":
            raise AuthRequiredError(
                data.get("message") or "Authentication required", status_code,
            )
        raise SearchError(
            data.get("error") or data.get("message") or "Search failed. Please try again.",
            status_code,
        )


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

class SearchStreamClient:
    """Posts a search and feeds the growing body into a StreamReconstructor."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._url = base_url.rstrip("/") + "/search"
        self._session = session or requests.Session()
        self._timeout = timeout

    def search(
        self,
        query: str,
        *,
        bearer_token: Optional[str] = None,
        anon_token: Optional[str] = None,
        conversation_id: Optional[str] = None,
        country: Optional[str] = None,
        callbacks: Optional[SearchCallbacks] = None,
    ) -> AgentSearchResult:
        """Run one search, invoking callbacks as frames arrive.

        The request runs on a worker thread while callbacks fire on the
        calling one, so the deadline holds even when the server stalls
        mid-stream. Timing out on the client does not stop the server,
        which finishes and persists the search.
        """
        headers = {"Content-Type": "application/json", "Accept": EVENT_STREAM}
        if bearer_token:
            headers["Authorization"] = f"Bearer {bearer_token}"
        elif anon_token:
            headers["X-Anon-Token"] = anon_token

        body: dict[str, Any] = {"query": query}
        if conversation_id:
            body["conversationId"] = conversation_id
        if country:
            body["country"] = country

        reconstructor = StreamReconstructor(
            callbacks,
            is_guest=bearer_token is None,
            conversation_id=conversation_id or "",
        )
        deadline = time.monotonic() + self._timeout
        items: queue.Queue[Any] = queue.Queue()
        cancelled = threading.Event()
        threading.Thread(
            target=_pump_response,
            args=(self._session, self._url, items, cancelled),
            kwargs={"json": body, "headers": headers, "stream": True, "timeout": self._timeout},
            name="search-stream",
            daemon=True,
        ).start()

        try:
            status_code, content_type = _next_item(items, deadline)
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            full_text = ""
            while True:
                chunk = _next_item(items, deadline)
                if chunk is _END:
                    break
                full_text += decoder.decode(chunk)
                reconstructor.on_progress(full_text)
            full_text += decoder.decode(b"", final=True)
        except requests.RequestException as e:
            if _is_read_timeout(e) or time.monotonic() >= deadline:
                raise SearchTimeoutError(TIMEOUT_MESSAGE) from e
            raise SearchNetworkError(
                "Network error during search. Please check your connection."
            ) from e
        finally:
            cancelled.set()

        return reconstructor.on_complete(status_code, content_type, full_text)


_END = object()


def _pump_response(
    session: requests.Session,
    url: str,
    items: queue.Queue[Any],
    cancelled: threading.Event,
    **request_kwargs: Any,
) -> None:
    """Worker thread: post, then queue (status, content type), each chunk and _END.

    Exceptions are queued too and raised by the waiting caller.
    """
    try:
        with session.post(url, **request_kwargs) as response:
            items.put((response.status_code, response.headers.get("content-type", "")))
            for chunk in response.iter_content(chunk_size=None):
                if cancelled.is_set():
                    return
                items.put(chunk)
        items.put(_END)
    except Exception as e:
        items.put(e)


def _next_item(items: queue.Queue[Any], deadline: float) -> Any:
    """Wait for the worker's next item, but never past the deadline."""
    try:
        item = items.get(timeout=max(deadline - time.monotonic(), 0))
    except queue.Empty:
        raise SearchTimeoutError(TIMEOUT_MESSAGE) from None
    if isinstance(item, Exception):
        raise item
    return item


def _is_read_timeout(error: requests.RequestException) -> bool:
    # iter_content reports a stalled read as ConnectionError(ReadTimeoutError)
    if isinstance(error, requests.Timeout):
        return True
    return any(isinstance(arg, ReadTimeoutError) for arg in error.args)
