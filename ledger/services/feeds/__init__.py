"""Indicator feed services for the info panel."""

from ledger.services.feeds.indicators import (
    STALE_MESSAGE,
    FeedError,
    FeedUnavailableError,
    IndicatorFeedClient,
    IndicatorRefresher,
    IndicatorService,
    crypto_items,
    economic_items,
    exchange_items,
    loading_panel,
)

__all__ = [
    # Services
    "IndicatorFeedClient",
    "IndicatorRefresher",
    "IndicatorService",
    # Panel building
    "STALE_MESSAGE",
    "crypto_items",
    "economic_items",
    "exchange_items",
    "loading_panel",
    # Exceptions
    "FeedError",
    "FeedUnavailableError",
]
