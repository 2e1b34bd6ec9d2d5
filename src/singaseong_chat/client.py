"""Async client for an Ollama-compatible generation API behind Cloudflare Access.

Uses ``httpx.AsyncClient``.  Streaming replies go through
``singaseong_chat.stream`` which copes with NDJSON and SSE framing and with
Ollama as well as OpenAI payload shapes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Iterable, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from singaseong_chat.config import ClientConfig
from singaseong_chat.errors import (
    ChatError,
    ChatTimeout,
    ConfigurationError,
    StreamUnsupported,
    TransportError,
    ValidationError,
)
from singaseong_chat.history import build_messages, coerce_message
from singaseong_chat.stream import StreamSession, aggregate, extract_text
from singaseong_chat.types import (
    ChatMessage,
    ChatRequest,
    ChunkCallback,
    RequestState,
    StreamResult,
)

_logger = logging.getLogger(__name__)

_STREAM_ACCEPT = "application/x-ndjson, text/event-stream, application/json"
_JSON_ACCEPT = "application/json, text/plain, */*"
_CONNECT_TIMEOUT = 30.0

# Query parameters that only make sense for a streamed reply
_STREAM_QUALIFIERS = ("stream",)


# ---------------------------------------------------------------------------
# URL and body helpers
# ---------------------------------------------------------------------------

def build_url(base_url: str, path: str | None) -> str:
    """Join *base_url* and *path* with exactly one slash between them."""
    base = base_url.rstrip("/")
    trimmed = (path or "").lstrip("/")
    return f"{base}/{trimmed}" if trimmed else base


def strip_stream_qualifier(url: str) -> str:
    """Remove streaming-only query parameters from *url*."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in _STREAM_QUALIFIERS
    ]
    return urlunsplit(parts._replace(query=urlencode(query)))


def describe_body(response: httpx.Response) -> str:
    """Best-effort, human-readable rendering of an error response body."""
    raw = response.text
    if not raw:
        return "No response body received"
    if "application/json" in response.headers.get("content-type", ""):
        try:
            return json.dumps(json.loads(raw), ensure_ascii=False)
        except ValueError:
            pass
    return raw


def _status_error(response: httpx.Response) -> TransportError:
    url = str(response.request.url)
    body = describe_body(response)
    return TransportError(
        f"Request to {url} failed with {response.status_code} "
        f"{response.reason_phrase}: {body}",
        url=url,
        status=response.status_code,
        body=body,
    )


def decode_reply(response: httpx.Response) -> tuple[str, Any]:
    """Extract ``(text, raw)`` from a complete, non-streamed reply.

    Handles a single JSON document, a stream-framed body returned in one
    piece, and plain text.
    """
    content_type = response.headers.get("content-type", "")
    body = response.text
    if not body.strip():
        return "", None
    try:
        data = json.loads(body)
    except ValueError:
        pass
    else:
        return extract_text(data), data

    if (
        "ndjson" in content_type
        or "event-stream" in content_type
        or body.lstrip().startswith(("{", "data:"))
    ):
        session = StreamSession(content_type)
        envelopes = session.feed(response.content) + session.finish()
        parts = [extract_text(e.payload, e.event) for e in envelopes]
        last = next((e.payload for e in reversed(envelopes) if e.payload is not None), None)
        return "".join(parts), last
    return body.strip(), body


# ---------------------------------------------------------------------------
# One chat call
# ---------------------------------------------------------------------------

class ChatCall:
    """State machine for a single request.

    IDLE -> SENDING -> STREAMING -> COMPLETING -> IDLE, with one optional
    COMPLETING -> SENDING non-streaming retry when the stream produced no
    text, and FAILED on any error or timeout.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        *,
        on_chunk: ChunkCallback | None = None,
        max_duration: float = 120.0,
    ) -> None:
        self._http = http
        self.url = url
        self.payload = payload
        self._headers = headers
        self._on_chunk = on_chunk
        self.max_duration = max_duration
        # Per-operation httpx limits follow this call's guard duration.
        self._timeout = httpx.Timeout(max_duration, connect=_CONNECT_TIMEOUT)
        self.state = RequestState.IDLE
        self.transitions: list[RequestState] = [RequestState.IDLE]
        self.fell_back = False

    async def run(self) -> StreamResult:
        try:
            return await asyncio.wait_for(self._run(), timeout=self.max_duration)
        except ChatError:
            self._transition(RequestState.FAILED)
            raise
        except asyncio.TimeoutError as e:
            self._transition(RequestState.FAILED)
            raise ChatTimeout(self.url, self.max_duration) from e
        except asyncio.CancelledError:
            self._transition(RequestState.FAILED)
            raise
        except Exception:
            self._transition(RequestState.FAILED)
            raise

    async def _run(self) -> StreamResult:
        try:
            if self.payload.get("stream"):
                result = await self._stream()
                if not result.full_response:
                    _logger.warning(
                        "Empty streamed reply from %s, retrying without streaming",
                        self.url,
                    )
                    self.fell_back = True
                    fallback = dict(self.payload, stream=False)
                    result = await self._fetch(strip_stream_qualifier(self.url), fallback)
            else:
                result = await self._fetch(self.url, self.payload)
        except httpx.ConnectTimeout as e:
            raise ChatTimeout(self.url, _CONNECT_TIMEOUT) from e
        except httpx.TimeoutException as e:
            raise ChatTimeout(self.url, self.max_duration) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"Request to {self.url} failed: {type(e).__name__}: {e}",
                url=self.url,
            ) from e

        self._transition(RequestState.IDLE)
        return result

    async def _stream(self) -> StreamResult:
        self._transition(RequestState.SENDING)
        headers = dict(self._headers, Accept=_STREAM_ACCEPT)
        async with self._http.stream(
            "POST", self.url, json=self.payload, headers=headers, timeout=self._timeout,
        ) as resp:
            if not resp.is_success:
                await resp.aread()
                raise _status_error(resp)
            if resp.status_code == 204:
                raise StreamUnsupported(
                    f"Response from {self.url} has no body to stream"
                )
            self._transition(RequestState.STREAMING)
            result = await aggregate(
                resp.aiter_bytes(),
                content_type=resp.headers.get("content-type"),
                on_chunk=self._on_chunk,
            )
        self._transition(RequestState.COMPLETING)
        return result

    async def _fetch(self, url: str, payload: dict[str, Any]) -> StreamResult:
        self._transition(RequestState.SENDING)
        headers = dict(self._headers, Accept=_JSON_ACCEPT)
        resp = await self._http.post(
            url, json=payload, headers=headers, timeout=self._timeout,
        )
        if not resp.is_success:
            raise _status_error(resp)
        self._transition(RequestState.COMPLETING)
        text, raw = decode_reply(resp)
        return StreamResult(full_response=text, raw=raw, completed=True)

    def _transition(self, state: RequestState) -> None:
        _logger.debug("%s: %s -> %s", self.url, self.state.value, state.value)
        self.state = state
        self.transitions.append(state)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ChatClient:
    """Explicitly constructed client value.

    Credentials are resolved once, here, and never re-read.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = (config or ClientConfig()).with_env_credentials()
        self._credentials: tuple[str, str] | None = (
            (self.config.client_id, self.config.client_secret)
            if self.config.has_credentials else None
        )
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.max_duration, connect=_CONNECT_TIMEOUT),
            transport=transport,
        )
        self._last_call: ChatCall | None = None

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def has_credentials(self) -> bool:
        return self._credentials is not None

    # ------------------------------------------------------------------
    # Generic requests
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        if self._credentials is None:
            if self.config.require_credentials:
                raise ConfigurationError(
                    "CF Access credentials are missing. Please configure "
                    "CF_ACCESS_CLIENT_ID and CF_ACCESS_CLIENT_SECRET."
                )
            return {}
        client_id, client_secret = self._credentials
        return {
            "CF-Access-Client-Id": client_id,
            "CF-Access-Client-Secret": client_secret,
        }

    async def request(
        self, method: str, path: str, body: Any = None,
    ) -> Any:
        """Issue a non-streaming request and return the decoded body.

        JSON replies are returned parsed, anything else as text.
        """
        headers = self._headers()
        headers["Accept"] = _JSON_ACCEPT
        url = build_url(self.base_url, path)
        try:
            resp = await self._http.request(method, url, headers=headers, json=body)
        except httpx.TimeoutException as e:
            raise ChatTimeout(url, self.config.max_duration) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"Request to {url} failed: {type(e).__name__}: {e}", url=url,
            ) from e
        if not resp.is_success:
            raise _status_error(resp)
        if "application/json" in resp.headers.get("content-type", ""):
            try:
                return resp.json() if resp.content else None
            except ValueError:
                return resp.text
        return resp.text

    async def get(self, path: str = "/") -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, body: Any) -> Any:
        return await self.request("POST", path, body)

    async def ping(self) -> Any:
        return await self.get("/")

    async def list_models(self) -> list[str]:
        """Names of the models the server has available."""
        data = await self.get(self.config.tags_path)
        models = data.get("models", []) if isinstance(data, dict) else []
        return [m["name"] for m in models if isinstance(m, dict) and m.get("name")]

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def send_message(
        self,
        prompt: str,
        history: Iterable[ChatMessage | Mapping[str, Any]] = (),
        *,
        model: str | None = None,
        stream: bool = True,
        on_chunk: ChunkCallback | None = None,
        max_duration: float | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> StreamResult:
        """Send *prompt* with the recent *history* to the chat endpoint."""
        _validate_prompt(prompt)
        request = ChatRequest(
            prompt=prompt,
            model=self._resolve_model(model),
            history=[coerce_message(m) for m in history],
            stream=stream,
            temperature=temperature,
            max_tokens=max_tokens,
            max_duration=max_duration,
            on_chunk=on_chunk,
        )
        return await self.chat(request)

    async def chat(self, request: ChatRequest) -> StreamResult:
        """Run a fully specified ``ChatRequest``."""
        _validate_prompt(request.prompt)
        model = self._resolve_model(request.model)
        headers = self._headers()
        messages = build_messages(
            request.prompt,
            request.history,
            self.config.system_prompt,
            self.config.history_window,
        )
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": request.stream,
        }
        payload.update(self._generation_options(request.temperature, request.max_tokens))

        _logger.info(
            "Chat request to %s (model=%s, stream=%s, history=%d)",
            self.config.chat_path, model, request.stream, len(messages) - 2,
        )
        return await self._execute(
            self.config.chat_path, payload, headers, request.on_chunk, request.max_duration,
        )

    async def generate(
        self,
        prompt: str,
        *,
        model: str | None = None,
        stream: bool = False,
        options: Mapping[str, Any] | None = None,
        on_chunk: ChunkCallback | None = None,
        max_duration: float | None = None,
    ) -> StreamResult:
        """Single-prompt completion via the generate endpoint."""
        _validate_prompt(prompt)
        model = self._resolve_model(model)
        headers = self._headers()
        payload: dict[str, Any] = {"model": model, "prompt": prompt, "stream": stream}
        payload.update(options or {})
        _logger.info(
            "Generate request to %s (model=%s, stream=%s)",
            self.config.generate_path, model, stream,
        )
        return await self._execute(
            self.config.generate_path, payload, headers, on_chunk, max_duration,
        )

    async def _execute(
        self,
        path: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        on_chunk: ChunkCallback | None,
        max_duration: float | None,
    ) -> StreamResult:
        duration = self.config.max_duration if max_duration is None else max_duration
        if duration <= 0:
            raise ValidationError(f"max_duration must be positive, got {duration}")
        call = ChatCall(
            self._http,
            build_url(self.base_url, path),
            payload,
            headers,
            on_chunk=on_chunk,
            max_duration=duration,
        )
        self._last_call = call
        return await call.run()

    def _resolve_model(self, model: str | None) -> str:
        resolved = (model or self.config.default_model or "").strip()
        if not resolved:
            raise ConfigurationError("No model configured for the request.")
        return resolved

    def _generation_options(
        self, temperature: float | None, max_tokens: int | None,
    ) -> dict[str, Any]:
        temp = self.config.temperature if temperature is None else temperature
        limit = self.config.max_tokens if max_tokens is None else max_tokens
        options: dict[str, Any] = {"temperature": temp, "max_tokens": limit}
        if self.config.api_type == "ollama":
            options["options"] = {"temperature": temp, "num_predict": limit}
        return options

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def last_call(self) -> ChatCall | None:
        """The ``ChatCall`` behind the most recent generation request."""
        return self._last_call

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    async def __aenter__(self) -> ChatClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


def _validate_prompt(prompt: Any) -> None:
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError("A non-empty prompt string is required.")
