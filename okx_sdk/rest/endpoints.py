"""Thin per-endpoint wrappers over RestInvoker.

Each method is a fixed path plus query/body shape. Methods return the
``data`` list of the OKX envelope and raise the ApiError on failure.
"""

from datetime import datetime
from typing import Any, Optional

from ..logging.config import get_rest_logger
from ..utils.time import is_time_synchronized, ms_to_datetime
from .invoker import RestInvoker

logger = get_rest_logger(__name__)

API_MARKET_PATH = "/api/v5/market"
API_PUBLIC_PATH = "/api/v5/public"
API_ACCOUNT_PATH = "/api/v5/account"
API_TRADE_PATH = "/api/v5/trade"

# OKX rejects signed requests whose timestamp is more than 30 seconds off.
DEFAULT_ALLOWED_SKEW_MS = 30_000


class _EndpointGroup:
    def __init__(self, invoker: RestInvoker):
        self.invoker = invoker

    async def _public(self, path: str, **query: Any) -> list:
        result = await self.invoker.public_request("GET", path, query)
        return result.unwrap().data or []

    async def _signed(self, method: str, path: str, query: Optional[dict] = None,
                      body: Optional[dict] = None) -> list:
        result = await self.invoker.signed_request(method, path, query, body)
        return result.unwrap().data or []


class MarketApi(_EndpointGroup):
    """Market data endpoints."""

    async def get_ticker(self, inst_id: str) -> list:
        return await self._public(f"{API_MARKET_PATH}/ticker", instId=inst_id)

    async def get_tickers(self, inst_type: str, inst_family: Optional[str] = None) -> list:
        return await self._public(f"{API_MARKET_PATH}/tickers", instType=inst_type,
                                  instFamily=inst_family)

    async def get_books(self, inst_id: str, sz: Optional[int] = None) -> list:
        return await self._public(f"{API_MARKET_PATH}/books", instId=inst_id, sz=sz)

    async def get_candles(self, inst_id: str, bar: Optional[str] = None,
                          after: Optional[str] = None, before: Optional[str] = None,
                          limit: Optional[int] = None) -> list:
        return await self._public(f"{API_MARKET_PATH}/candles", instId=inst_id, bar=bar,
                                  after=after, before=before, limit=limit)


class PublicDataApi(_EndpointGroup):
    """Public reference data."""

    async def get_system_time(self) -> list:
        return await self._public(f"{API_PUBLIC_PATH}/time")

    async def get_server_time(self) -> datetime:
        """Exchange clock as an aware UTC datetime."""
        data = await self.get_system_time()
        return ms_to_datetime(int(data[0]["ts"]))

    async def is_clock_synchronized(self, allowed_diff_ms: int = DEFAULT_ALLOWED_SKEW_MS,
                                    now: Optional[datetime] = None) -> bool:
        """
        Compare the local clock with the exchange clock.

        Signed requests carry a local timestamp, so a skewed clock shows up
        as rejected signatures. Call this once at startup to catch it early.
        """
        data = await self.get_system_time()
        server_ms = int(data[0]["ts"])
        synchronized = is_time_synchronized(server_ms, allowed_diff_ms, now)
        if not synchronized:
            logger.warning("clock_skew_detected",
                           server_time=ms_to_datetime(server_ms).isoformat(),
                           allowed_diff_ms=allowed_diff_ms)
        return synchronized

    async def get_instruments(self, inst_type: str, inst_id: Optional[str] = None) -> list:
        return await self._public(f"{API_PUBLIC_PATH}/instruments", instType=inst_type,
                                  instId=inst_id)


class AccountApi(_EndpointGroup):
    """Account endpoints. Require credentials."""

    async def get_balance(self, ccy: Optional[str] = None) -> list:
        return await self._signed("GET", f"{API_ACCOUNT_PATH}/balance", {"ccy": ccy})

    async def get_positions(self, inst_type: Optional[str] = None,
                            inst_id: Optional[str] = None) -> list:
        return await self._signed("GET", f"{API_ACCOUNT_PATH}/positions",
                                  {"instType": inst_type, "instId": inst_id})


class TradeApi(_EndpointGroup):
    """Order placement endpoints. Require credentials."""

    async def place_order(self, inst_id: str, td_mode: str, side: str, ord_type: str,
                          sz: str, px: Optional[str] = None, **extra: Any) -> list:
        body = {"instId": inst_id, "tdMode": td_mode, "side": side,
                "ordType": ord_type, "sz": sz}
        if px is not None:
            body["px"] = px
        body.update({k: v for k, v in extra.items() if v is not None})
        return await self._signed("POST", f"{API_TRADE_PATH}/order", body=body)

    async def cancel_order(self, inst_id: str, ord_id: Optional[str] = None,
                           cl_ord_id: Optional[str] = None) -> list:
        if ord_id is None and cl_ord_id is None:
            raise ValueError("Either ord_id or cl_ord_id is required")
        body = {"instId": inst_id}
        if ord_id is not None:
            body["ordId"] = ord_id
        if cl_ord_id is not None:
            body["clOrdId"] = cl_ord_id
        return await self._signed("POST", f"{API_TRADE_PATH}/cancel-order", body=body)
