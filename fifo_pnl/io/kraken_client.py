# fifo_pnl/io/kraken_client.py
"""Kraken REST client: signed private history endpoints and the public ticker."""

import base64
import hashlib
import hmac
import logging
import time
import urllib.parse
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import requests

from fifo_pnl.domain.errors import FifoPnLError

logger = logging.getLogger(__name__)

PAGE_SIZE = 50


class KrakenAPIError(FifoPnLError):
    """Kraken answered with an error list or the request failed."""


class KrakenClient:
    """Fetches raw trade history, closed orders and prices from Kraken."""

    TRADES_PATH = "/0/private/TradesHistory"
    CLOSED_ORDERS_PATH = "/0/private/ClosedOrders"
    TICKER_PATH = "/0/public/Ticker"

    def __init__(
        self,
        api_key: str = "",
        secret_key: str = "",
        base_url: str = "https://api.kraken.com",
        request_delay: float = 0,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.request_delay = request_delay
        self.timeout = timeout
        self.session = session or requests.Session()
        self._last_nonce = 0

    def _nonce(self) -> str:
        nonce = max(time.time_ns() // 1000, self._last_nonce + 1)
        self._last_nonce = nonce
        return str(nonce)

    def sign(self, path: str, data: Dict[str, Any]) -> str:
        """API-Sign header: HMAC-SHA512 of path + SHA256(nonce + postdata)."""
        postdata = urllib.parse.urlencode(data)
        message = (str(data["nonce"]) + postdata).encode()
        sha256 = hashlib.sha256(message).digest()
        secret = base64.b64decode(self.secret_key)
        mac = hmac.new(secret, path.encode() + sha256, hashlib.sha512)
        return base64.b64encode(mac.digest()).decode()

    def _unwrap(self, path: str, response: requests.Response) -> Dict[str, Any]:
        try:
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise KrakenAPIError(f"{path}: {e}") from e

        errors = payload.get("error") or []
        if errors:
            raise KrakenAPIError(f"{path}: {', '.join(errors)}")
        return payload.get("result") or {}

    def private_request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        data = dict(params or {})
        data["nonce"] = self._nonce()
        headers = {
            "API-Key": self.api_key,
            "API-Sign": self.sign(path, data),
            "Content-Type": "application/x-www-form-urlencoded; charset=utf-8",
        }
        try:
            response = self.session.post(
                self.base_url + path, data=data, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise KrakenAPIError(f"{path}: {e}") from e
        return self._unwrap(path, response)

    def public_request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self.session.get(self.base_url + path, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise KrakenAPIError(f"{path}: {e}") from e
        return self._unwrap(path, response)

    def _paginate(self, path: str, key: str, params: Dict[str, Any], label: str) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        offset = 0

        while True:
            result = self.private_request(path, {**params, "ofs": offset})
            page = result.get(key) or {}
            count = int(result.get("count", 0))

            for txid, record in page.items():
                records.append({**record, "txid": txid})

            logger.info("Fetched %d/%d %s...", min(offset + len(page), count), count, label)
            offset += PAGE_SIZE
            if not page or count <= offset:
                break
            if self.request_delay:
                time.sleep(self.request_delay)

        return records

    def fetch_trades(
        self,
        pair: str,
        order_reference: Optional[int] = None,
        start: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """
        Raw fills of ``pair``, each with its ``txid``.

        TradesHistory cannot filter by userref; scoping happens through
        the closed orders. ``start`` is an exclusive epoch timestamp used
        for incremental fetches.
        """
        params: Dict[str, Any] = {}
        if start is not None:
            params["start"] = start
        trades = self._paginate(self.TRADES_PATH, "trades", params, "trades")
        return [t for t in trades if t.get("pair") == pair]

    def fetch_closed_orders(
        self,
        pair: str,
        order_reference: Optional[int] = None,
        start: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """Raw closed orders, optionally restricted to a userref."""
        params: Dict[str, Any] = {}
        if order_reference is not None:
            params["userref"] = order_reference
        if start is not None:
            params["start"] = start
        return self._paginate(self.CLOSED_ORDERS_PATH, "closed", params, "closed orders")

    def fetch_current_price(self, pair: str) -> Decimal:
        """Last traded price of ``pair``."""
        result = self.public_request(self.TICKER_PATH, {"pair": pair})
        ticker = result.get(pair) or next(iter(result.values()), {})
        last = (ticker.get("c") or [None])[0]
        try:
            return Decimal(str(last))
        except InvalidOperation:
            raise KrakenAPIError(f"{self.TICKER_PATH}: no last price for {pair}") from None
