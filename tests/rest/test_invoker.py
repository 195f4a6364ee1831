"""Tests for the REST invoker and response classification."""

import asyncio
import json
from datetime import datetime

import aiohttp
import pytest

from okx_sdk.auth import sign
from okx_sdk.config.defaults import RestParams
from okx_sdk.errors import ExchangeError, HttpError
from okx_sdk.rest import ApiResult, RestInvoker
from okx_sdk.rest.invoker import build_request_path, classify_response, serialize_body

from tests.helpers import FakeHttpSession, run


class TestRequestPath:
    """Test query string handling."""

    def test_no_query(self):
        assert build_request_path("/api/v5/account/balance") == "/api/v5/account/balance"

    def test_keeps_order_and_skips_none(self):
        """Should keep insertion order and omit None values."""
        path = build_request_path("/api/v5/market/candles",
                                  {"instId": "BTC-USDT", "bar": None, "limit": 10})
        assert path == "/api/v5/market/candles?instId=BTC-USDT&limit=10"

    def test_all_none_query(self):
        assert build_request_path("/p", {"a": None}) == "/p"


class TestSerializeBody:
    """Test body serialization."""

    def test_none_is_empty(self):
        assert serialize_body(None) == ""

    def test_string_passes_through(self):
        assert serialize_body('{"a": 1}') == '{"a": 1}'

    def test_compact_json(self):
        """Should produce compact JSON so the signed text equals the sent text."""
        assert serialize_body({"instId": "BTC-USDT", "sz": "1"}) == '{"instId":"BTC-USDT","sz":"1"}'


class TestClassifyResponse:
    """Test mapping of HTTP outcomes to ApiResult."""

    def test_success(self):
        result = classify_response(200, '{"code":"0","msg":"","data":[{"ts":"1"}]}')
        assert result.ok
        assert result.unwrap().data == [{"ts": "1"}]

    def test_http_error(self):
        """Non-2xx should be an HttpError carrying status and body."""
        result = classify_response(503, "Service Unavailable")
        assert not result.ok
        assert isinstance(result.error, HttpError)
        assert result.error.status == 503
        assert result.error.body == "Service Unavailable"
        assert result.error.recoverable

    def test_client_error_not_recoverable(self):
        result = classify_response(401, '{"code":"50113","msg":"Invalid Sign"}')
        assert isinstance(result.error, HttpError)
        assert not result.error.recoverable

    def test_exchange_error(self):
        """2xx with non-zero code should be an ExchangeError."""
        result = classify_response(200, '{"code":"51000","msg":"Parameter error","data":[]}')
        assert isinstance(result.error, ExchangeError)
        assert result.error.code == "51000"
        assert result.error.exchange_message == "Parameter error"
        assert result.response.json["code"] == "51000"

    def test_exchange_error_falls_back_to_item_message(self):
        """Should use data[0].sMsg/sCode when the top-level msg is empty."""
        body = json.dumps({"code": "1", "msg": "",
                           "data": [{"sCode": "51008", "sMsg": "Insufficient balance"}]})
        result = classify_response(200, body)
        assert result.error.code == "51008"
        assert result.error.exchange_message == "Insufficient balance"

    def test_empty_body_is_success(self):
        result = classify_response(204, "")
        assert result.ok
        assert result.response.data is None

    def test_invalid_json(self):
        result = classify_response(200, "<html>")
        assert isinstance(result.error, HttpError)

    def test_unwrap_raises_carried_error(self):
        result = classify_response(200, '{"code":"51000","msg":"bad"}')
        with pytest.raises(ExchangeError):
            result.unwrap()

    def test_result_constructors(self):
        error = HttpError("boom")
        assert ApiResult.failure(error).error is error
        assert not ApiResult.failure(error).ok


class TestBuildSignedRequest:
    """Test request signing and header assembly."""

    def test_headers(self, credentials):
        """Should carry key, signature, timestamp, passphrase and simulated flag."""
        invoker = RestInvoker(credentials)
        request = invoker.build_signed_request("get", "/api/v5/account/balance", {"ccy": "BTC"})

        assert request.method == "GET"
        assert request.request_path == "/api/v5/account/balance?ccy=BTC"
        assert request.headers["OK-ACCESS-KEY"] == credentials.api_key
        assert request.headers["OK-ACCESS-PASSPHRASE"] == credentials.passphrase
        assert request.headers["OK-ACCESS-TIMESTAMP"] == request.timestamp
        assert request.headers["OK-ACCESS-SIGN"] == request.signature
        assert request.headers["x-simulated-trading"] == "1"
        assert request.headers["Content-Type"] == "application/json"
        assert "expTime" not in request.headers

    def test_signature_covers_query_and_body(self, credentials):
        invoker = RestInvoker(credentials)
        body = {"instId": "BTC-USDT", "sz": "1"}
        request = invoker.build_signed_request("POST", "/api/v5/trade/order", body=body)

        expected = sign(credentials.api_secret, request.timestamp, "POST",
                        "/api/v5/trade/order", '{"instId":"BTC-USDT","sz":"1"}')
        assert request.signature == expected
        assert request.body == '{"instId":"BTC-USDT","sz":"1"}'

    def test_timestamp_format(self, credentials):
        """Should use ISO-8601 UTC with milliseconds."""
        request = RestInvoker(credentials).build_signed_request("GET", "/p")
        parsed = datetime.strptime(request.timestamp, "%Y-%m-%dT%H:%M:%S.%fZ")
        assert len(request.timestamp) == 24
        assert parsed.year >= 2020

    def test_expiration_header(self, credentials):
        params = RestParams(request_expiration_ms=30000)
        request = RestInvoker(credentials, params).build_signed_request("GET", "/p")
        assert int(request.headers["expTime"]) > 0

    def test_accept_language(self, credentials):
        params = RestParams(accept_language="en-US")
        request = RestInvoker(credentials, params).build_signed_request("GET", "/p")
        assert request.headers["Accept-Language"] == "en-US"

    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            RestInvoker().build_signed_request("GET", "/p")

    def test_repr_hides_signature(self, credentials):
        request = RestInvoker(credentials).build_signed_request("GET", "/p")
        assert request.signature not in repr(request)
        assert credentials.passphrase not in repr(request)


class TestSend:
    """Test request dispatch through the HTTP session."""

    def test_signed_request(self, credentials):
        """Should send the signed path, body and headers to base_url."""
        session = FakeHttpSession(text='{"code":"0","msg":"","data":[{"ordId":"1"}]}')
        invoker = RestInvoker(credentials, RestParams(base_url="https://example.test/"),
                              session=session)

        result = run(invoker.signed_request("POST", "/api/v5/trade/order",
                                            body={"instId": "BTC-USDT"}))

        assert result.ok
        assert result.unwrap().data == [{"ordId": "1"}]
        call = session.calls[0]
        assert call["method"] == "POST"
        assert call["url"] == "https://example.test/api/v5/trade/order"
        assert call["data"] == '{"instId":"BTC-USDT"}'
        assert "OK-ACCESS-SIGN" in call["headers"]

    def test_public_request_is_unsigned(self):
        session = FakeHttpSession()
        invoker = RestInvoker(session=session)

        result = run(invoker.public_request("GET", "/api/v5/public/time"))

        assert result.ok
        call = session.calls[0]
        assert call["url"] == "https://www.okx.com/api/v5/public/time"
        assert call["data"] is None
        assert "OK-ACCESS-SIGN" not in call["headers"]
        assert "x-simulated-trading" not in call["headers"]

    def test_network_error(self, credentials):
        """Client errors should become an HttpError without a status."""
        session = FakeHttpSession(error=aiohttp.ClientConnectionError("refused"))
        invoker = RestInvoker(credentials, session=session)

        result = run(invoker.signed_request("GET", "/api/v5/account/balance"))

        assert isinstance(result.error, HttpError)
        assert result.error.status is None
        assert result.error.recoverable

    def test_timeout(self):
        session = FakeHttpSession(error=asyncio.TimeoutError())
        result = run(RestInvoker(session=session).public_request("GET", "/p"))
        assert isinstance(result.error, HttpError)

    def test_undecodable_body(self):
        """A body that is not UTF-8 should become an HttpError carrying the status."""
        error = UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte")
        session = FakeHttpSession(status=200, text_error=error)

        result = run(RestInvoker(session=session).public_request("GET", "/api/v5/public/time"))

        assert not result.ok
        assert isinstance(result.error, HttpError)
        assert result.error.status == 200
        assert "UTF-8" in str(result.error)

    def test_exchange_error_returned(self, credentials):
        session = FakeHttpSession(text='{"code":"50113","msg":"Invalid Sign","data":[]}')
        result = run(RestInvoker(credentials, session=session).signed_request("GET", "/p"))
        assert isinstance(result.error, ExchangeError)
        assert result.error.code == "50113"

    def test_does_not_close_borrowed_session(self):
        session = FakeHttpSession()

        async def scenario():
            async with RestInvoker(session=session):
                pass

        run(scenario())
        assert not session.closed

    def test_concurrent_calls_get_fresh_signatures(self, credentials):
        """Each call should be signed independently."""
        session = FakeHttpSession()
        invoker = RestInvoker(credentials, session=session)

        async def scenario():
            await asyncio.gather(
                invoker.signed_request("GET", "/a"),
                invoker.signed_request("GET", "/b"),
            )

        run(scenario())
        signatures = {call["headers"]["OK-ACCESS-SIGN"] for call in session.calls}
        assert len(signatures) == 2
