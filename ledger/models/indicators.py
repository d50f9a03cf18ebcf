"""
Indicator Panel Models

The info panel next to the ledger shows national economic indicators and
crypto prices. Values are display strings; anything the feeds did not
deliver is the placeholder.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ledger.utils.currency import PLACEHOLDER


class FeedStatus(str, Enum):
    """Freshness of the indicator panel."""
    LOADING = "loading"
    FRESH = "fresh"
    STALE = "stale"


class IndicatorItem(BaseModel):
    """One key/value row of the panel."""
    model_config = ConfigDict(frozen=True)

    key: str
    value: str = PLACEHOLDER

    @property
    def is_placeholder(self) -> bool:
        return self.value == PLACEHOLDER


class IndicatorPanel(BaseModel):
    """Everything the info panel renders."""
    model_config = ConfigDict(frozen=True)

    economic: list[IndicatorItem] = Field(default_factory=list)
    exchange: list[IndicatorItem] = Field(default_factory=list)
    crypto: list[IndicatorItem] = Field(default_factory=list)
    status: FeedStatus = FeedStatus.LOADING
    last_updated: Optional[datetime] = None
    message: str = ""
