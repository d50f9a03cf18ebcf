"""Tests for amount parsing, display formatting and settings."""

import math

import pytest

from ledger.audit import AuditLogger
from ledger.config import get_settings, validate_all_settings
from ledger.config.settings import AppSettings
from ledger.models.audit import AuditEventBuilder, AuditEventType
from ledger.utils import format_currency, format_signed, format_usd, parse_amount


class TestParseAmount:
    """Tests for the single amount-parsing rule."""

    @pytest.mark.parametrize("raw, expected", [
        ("1500", 1500),
        (" 42 ", 42),
        ("10.5", 11),
        ("10.49", 10),
        (0.5, 1),
        (7, 7),
        ("-3", 0),
        (-3, 0),
        ("", 0),
        (None, 0),
        ("abc", 0),
        ("NaN", 0),
        (math.inf, 0),
        (True, 0),
    ])
    def test_parse(self, raw, expected):
        assert parse_amount(raw) == expected


class TestFormatting:
    """Tests for CLP-style and USD-style rendering."""

    def test_thousands_use_dots(self):
        assert format_currency(1234567) == "$1.234.567"

    def test_small_and_zero(self):
        assert format_currency(999) == "$999"
        assert format_currency(0) == "$0"
        assert format_currency(None) == "$0"

    def test_negative_available(self):
        assert format_currency(-500) == "-$500"

    def test_usd(self):
        assert format_usd(12345) == "$12,345"
        assert format_usd(None) == "—"

    def test_signed_rows(self):
        assert format_signed(1000, is_expense=True) == "- $1.000"
        assert format_signed(1000, is_expense=False) == "+ $1.000"


class TestSettings:
    """Tests for configuration defaults and overrides."""

    def test_defaults(self):
        settings = get_settings()
        assert settings.app.max_attachment_size_mb == 25
        assert settings.app.histogram_points == 14
        assert settings.app.preview_ttl_seconds == 60
        assert settings.feeds.refresh_interval_seconds == 600
        assert "mindicador.cl" in settings.feeds.indicators_url

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("MAX_ATTACHMENT_SIZE_MB", "5")
        assert AppSettings().max_attachment_size_bytes == 5 * 1024 * 1024

    def test_validate_all(self):
        assert all(validate_all_settings().values())


class TestAuditLogger:
    """Tests for the local audit trail."""

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        audit_logger = AuditLogger(history_size=3)
        for amount in range(5):
            await audit_logger.log_legacy_income_dropped(amount)
        assert [e.details["amount"] for e in audit_logger.history] == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_empty_orphan_list_is_not_logged(self):
        audit_logger = AuditLogger()
        await audit_logger.log_attachments_orphaned([], "nothing", correlation_id=None)
        assert audit_logger.history == []

    @pytest.mark.asyncio
    async def test_log_records_event(self):
        audit_logger = AuditLogger()
        await audit_logger.log(AuditEventBuilder.feed_unavailable("crypto", "timeout"))
        assert audit_logger.history[0].event_type == AuditEventType.FEED_UNAVAILABLE
