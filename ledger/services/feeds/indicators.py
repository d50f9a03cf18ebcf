"""
Indicator Feeds

Fetches national economic indicators (mindicador.cl) and crypto prices
(CoinGecko) for the info panel beside the ledger.

DESIGN DECISION: The feeds are decoration. A failing feed degrades the
panel to placeholders and a stale message; it never raises into the
caller and never touches ledger state.

The two feeds are fetched independently, so one being down does not
blank the other.
"""

import asyncio
import json
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger.audit import AuditLogger
from ledger.config import get_settings
from ledger.models.indicators import FeedStatus, IndicatorItem, IndicatorPanel
from ledger.utils.currency import PLACEHOLDER, format_currency, format_usd

logger = structlog.get_logger(__name__)

STALE_MESSAGE = "Could not update. Check your connection."
LOADING_MESSAGE = "Loading…"

CRYPTO_COINS = [
    ("BTC", "bitcoin"),
    ("ETH", "ethereum"),
    ("SOL", "solana"),
]


class FeedError(Exception):
    """Base exception for feed errors."""
    pass


class FeedUnavailableError(FeedError):
    """A feed could not be fetched or decoded after all retries."""

    def __init__(self, feed: str, message: str):
        self.feed = feed
        super().__init__(f"{feed}: {message}")


def _round_half_up(value: Any) -> Optional[int]:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return int(number.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _series(payload: Optional[dict], key: str, field: str = "valor") -> Any:
    """payload[key][field], or None when any level is missing or falsy."""
    entry = (payload or {}).get(key)
    if not isinstance(entry, dict):
        return None
    return entry.get(field) or None


class IndicatorFeedClient:
    """
    Thin HTTP client for the two JSON feeds.

    Requests are blocking urllib calls pushed onto a worker thread, and
    each fetch is retried with exponential backoff before giving up.
    """

    def __init__(
        self,
        indicators_url: Optional[str] = None,
        crypto_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings().feeds
        self.indicators_url = indicators_url or settings.indicators_url
        self.crypto_url = crypto_url or settings.crypto_url
        self._timeout = timeout_seconds or settings.request_timeout_seconds

    def _get_json(self, url: str) -> dict:
        request = Request(
            url=url,
            headers={"Accept": "application/json", "Cache-Control": "no-store"},
            method="GET",
        )
        with urlopen(request, timeout=self._timeout) as response:  # noqa: S310 - URL comes from trusted settings
            payload = json.loads(response.read().decode("utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("Feed payload is not a JSON object")
        return payload

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def fetch_json(self, url: str) -> dict:
        """
        GET a JSON object.

        Raises:
            URLError / HTTPError / ValueError: After the last retry
        """
        return await asyncio.to_thread(self._get_json, url)

    async def _fetch(self, feed: str, url: str) -> dict:
        try:
            return await self.fetch_json(url)
        except (HTTPError, URLError, OSError, ValueError) as e:
            raise FeedUnavailableError(feed, str(e)) from e

    async def fetch_indicators(self) -> dict:
        """
        Raises:
            FeedUnavailableError: If mindicador.cl cannot be reached
        """
        return await self._fetch("indicators", self.indicators_url)

    async def fetch_crypto(self) -> dict:
        """
        Raises:
            FeedUnavailableError: If CoinGecko cannot be reached
        """
        return await self._fetch("crypto", self.crypto_url)


# =============================================================================
# PANEL BUILDING
# =============================================================================

def _money_row(key: str, value: Any, symbol: str) -> IndicatorItem:
    amount = _round_half_up(value) if value else None
    return IndicatorItem(
        key=key,
        value=format_currency(amount, symbol) if amount is not None else PLACEHOLDER,
    )


def economic_items(payload: Optional[dict], symbol: str = "$") -> list[IndicatorItem]:
    """UF, UTM, IPC and Imacec rows."""
    ipc = _series(payload, "ipc", "variacion") or _series(payload, "ipc")
    imacec = _series(payload, "imacec")
    return [
        _money_row("UF", _series(payload, "uf"), symbol),
        _money_row("UTM", _series(payload, "utm"), symbol),
        IndicatorItem(key="IPC", value=f"{ipc}%" if ipc is not None else PLACEHOLDER),
        IndicatorItem(key="Imacec", value=str(imacec) if imacec is not None else PLACEHOLDER),
    ]


def exchange_items(payload: Optional[dict], symbol: str = "$") -> list[IndicatorItem]:
    """USD/CLP and EUR/CLP rows."""
    return [
        _money_row("USD/CLP", _series(payload, "dolar"), symbol),
        _money_row("EUR/CLP", _series(payload, "euro"), symbol),
    ]


def crypto_items(payload: Optional[dict], symbol: str = "$") -> list[IndicatorItem]:
    """BTC, ETH and SOL rows rendered as `$usd | $clp`."""
    items = []
    for key, coin in CRYPTO_COINS:
        quote = (payload or {}).get(coin)
        if not isinstance(quote, dict):
            items.append(IndicatorItem(key=key))
            continue
        usd = _round_half_up(quote.get("usd")) if quote.get("usd") is not None else None
        clp = _round_half_up(quote.get("clp")) if quote.get("clp") is not None else None
        clp_text = format_currency(clp, symbol) if clp is not None else PLACEHOLDER
        items.append(IndicatorItem(key=key, value=f"{format_usd(usd)} | {clp_text}"))
    return items


def loading_panel() -> IndicatorPanel:
    """What the panel shows before the first refresh completes."""
    return IndicatorPanel(
        economic=economic_items(None),
        exchange=exchange_items(None),
        crypto=crypto_items(None),
        status=FeedStatus.LOADING,
        message=LOADING_MESSAGE,
    )


class IndicatorService:
    """
    Builds the info panel from both feeds.

    `refresh()` never raises: unavailable feeds become placeholders and
    the panel is marked stale.
    """

    def __init__(
        self,
        client: Optional[IndicatorFeedClient] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._client = client or IndicatorFeedClient()
        self._audit_logger = audit_logger
        self._symbol = get_settings().app.currency_symbol
        self._panel = loading_panel()

    @property
    def panel(self) -> IndicatorPanel:
        """The last panel built (the loading panel before any refresh)."""
        return self._panel

    async def _collect(self, feed: str, fetch) -> Optional[dict]:
        try:
            return await fetch()
        except FeedUnavailableError as e:
            logger.warning("feed_unavailable", feed=feed, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_feed_unavailable(feed=feed, error_message=str(e))
            return None

    async def refresh(self) -> IndicatorPanel:
        """Fetch both feeds and rebuild the panel."""
        indicators, crypto = await asyncio.gather(
            self._collect("indicators", self._client.fetch_indicators),
            self._collect("crypto", self._client.fetch_crypto),
        )

        now = datetime.now().astimezone()
        if indicators is None or crypto is None:
            status = FeedStatus.STALE
            message = STALE_MESSAGE
        else:
            status = FeedStatus.FRESH
            message = f"Updated: {now:%Y-%m-%d %H:%M}"

        self._panel = IndicatorPanel(
            economic=economic_items(indicators, self._symbol),
            exchange=exchange_items(indicators, self._symbol),
            crypto=crypto_items(crypto, self._symbol),
            status=status,
            last_updated=now if status == FeedStatus.FRESH else self._panel.last_updated,
            message=message,
        )
        logger.info("indicators_refreshed", status=status.value)
        return self._panel


class IndicatorRefresher:
    """
    Runs `IndicatorService.refresh` on a fixed interval as a background task.

    The first refresh happens immediately on `start()`.
    """

    def __init__(
        self,
        service: IndicatorService,
        interval_seconds: Optional[float] = None,
    ):
        self._service = service
        self._interval = interval_seconds or get_settings().feeds.refresh_interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            await self._service.refresh()
            await asyncio.sleep(self._interval)

    def start(self) -> asyncio.Task:
        """Start the loop; calling it again while running is a no-op."""
        if not self.running:
            self._task = asyncio.create_task(self._run(), name="indicator-refresh")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
