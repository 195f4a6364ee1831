"""Signed and public HTTP requests against the OKX REST API."""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union
from urllib.parse import urlencode

import aiohttp

from ..auth.credentials import Credentials
from ..auth.signer import sign
from ..config.defaults import RestParams
from ..errors import ApiError, ExchangeError, HttpError
from ..logging.config import get_rest_logger
from ..utils.time import generate_expiration_ms, generate_timestamp

logger = get_rest_logger(__name__)

Body = Union[None, str, Mapping[str, Any], list]


def build_request_path(path: str, query: Optional[Mapping[str, Any]] = None) -> str:
    """Append the query string to ``path``, skipping None values and keeping order."""
    if not query:
        return path
    items = [(k, v) for k, v in query.items() if v is not None]
    if not items:
        return path
    return f"{path}?{urlencode(items)}"


def serialize_body(body: Body) -> str:
    """Serialize a request body to the exact string that is signed and sent."""
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    return json.dumps(body, separators=(",", ":"))


@dataclass(frozen=True)
class SignedRequest:
    """A fully prepared, signed request. One instance per outbound call."""
    method: str
    path: str
    query: Mapping[str, Any]
    body: str
    timestamp: str
    signature: str = field(repr=False)
    headers: Mapping[str, str] = field(repr=False)

    @property
    def request_path(self) -> str:
        return build_request_path(self.path, self.query)


@dataclass(frozen=True)
class RawResponse:
    """HTTP response as received, with the decoded JSON document if any."""
    status: int
    body: str
    json: Optional[Any] = None

    @property
    def data(self) -> Any:
        """The ``data`` member of an OKX response envelope."""
        if isinstance(self.json, dict):
            return self.json.get("data")
        return None


@dataclass(frozen=True)
class ApiResult:
    """Outcome of a REST call: either a response or an ApiError, never both."""
    ok: bool
    response: Optional[RawResponse] = None
    error: Optional[ApiError] = None

    @classmethod
    def success(cls, response: RawResponse) -> "ApiResult":
        return cls(ok=True, response=response)

    @classmethod
    def failure(cls, error: ApiError, response: Optional[RawResponse] = None) -> "ApiResult":
        return cls(ok=False, response=response, error=error)

    def unwrap(self) -> RawResponse:
        """Return the response or raise the carried error."""
        if not self.ok:
            raise self.error  # type: ignore[misc]
        return self.response  # type: ignore[return-value]


def classify_response(status: int, text: str) -> ApiResult:
    """Turn a status code and body into an ApiResult."""
    if not 200 <= status < 300:
        return ApiResult.failure(
            HttpError(f"HTTP {status}", status=status, body=text[:500]),
            RawResponse(status=status, body=text),
        )

    if not text:
        return ApiResult.success(RawResponse(status=status, body=text))

    try:
        document = json.loads(text)
    except ValueError:
        return ApiResult.failure(
            HttpError(f"HTTP {status}: response body is not valid JSON",
                      status=status, body=text[:500]),
            RawResponse(status=status, body=text),
        )

    response = RawResponse(status=status, body=text, json=document)

    if isinstance(document, dict) and str(document.get("code", "0")) != "0":
        code = str(document.get("code"))
        message = document.get("msg") or ""
        entries = document.get("data")
        if not message and isinstance(entries, list) and entries and isinstance(entries[0], dict):
            message = entries[0].get("sMsg") or ""
            code = entries[0].get("sCode") or code
        return ApiResult.failure(
            ExchangeError(f"OKX error {code}: {message}", code=code, exchange_message=message),
            response,
        )

    return ApiResult.success(response)


class RestInvoker:
    """Issues signed and public REST calls.

    Holds only immutable configuration, so one instance may serve any number
    of concurrent calls. No retries happen here.
    """

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        params: Optional[RestParams] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.credentials = credentials
        self.params = params or RestParams()
        self.base_url = self.params.base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "RestInvoker":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP session if this invoker created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.params.timeout_ms / 1000.0)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    def _common_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.params.accept_language:
            headers["Accept-Language"] = self.params.accept_language
        if self.credentials is not None:
            headers["x-simulated-trading"] = self.credentials.simulated_flag
        return headers

    def build_signed_request(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Body = None,
    ) -> SignedRequest:
        """Sign a request with a fresh timestamp and assemble its headers."""
        if self.credentials is None:
            raise ValueError("Signed requests require credentials")

        method = method.upper()
        query = dict(query or {})
        body_text = serialize_body(body)
        timestamp = generate_timestamp()
        request_path = build_request_path(path, query)
        signature = sign(self.credentials.api_secret, timestamp, method, request_path, body_text)

        headers = self._common_headers()
        headers.update({
            "OK-ACCESS-KEY": self.credentials.api_key,
            "OK-ACCESS-SIGN": signature,
            "OK-ACCESS-TIMESTAMP": timestamp,
            "OK-ACCESS-PASSPHRASE": self.credentials.passphrase,
        })
        if self.params.request_expiration_ms:
            headers["expTime"] = str(generate_expiration_ms(self.params.request_expiration_ms))

        return SignedRequest(
            method=method,
            path=path,
            query=query,
            body=body_text,
            timestamp=timestamp,
            signature=signature,
            headers=headers,
        )

    async def signed_request(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Body = None,
    ) -> ApiResult:
        """Issue an authenticated request."""
        request = self.build_signed_request(method, path, query, body)
        return await self._send(request.method, request.request_path, request.body, request.headers)

    async def public_request(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
    ) -> ApiResult:
        """Issue an unauthenticated request."""
        return await self._send(method.upper(), build_request_path(path, query), "",
                                self._common_headers())

    async def _send(self, method: str, request_path: str, body: str,
                    headers: Mapping[str, str]) -> ApiResult:
        url = f"{self.base_url}{request_path}"
        logger.debug("rest_request", method=method, path=request_path)

        try:
            async with self._get_session().request(
                method, url, data=body or None, headers=dict(headers)
            ) as resp:
                status = resp.status
                try:
                    text = await resp.text()
                except UnicodeDecodeError:
                    logger.warning("rest_undecodable_body", method=method, path=request_path,
                                   status=status)
                    return ApiResult.failure(
                        HttpError(f"HTTP {status}: response body is not valid UTF-8",
                                  status=status)
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("rest_network_error", method=method, path=request_path,
                           error=type(e).__name__)
            return ApiResult.failure(
                HttpError(f"Network error on {method} {request_path}: {type(e).__name__}")
            )

        result = classify_response(status, text)
        if not result.ok:
            logger.warning(
                "rest_request_failed",
                method=method,
                path=request_path,
                status=status,
                error=str(result.error),
            )
        return result
