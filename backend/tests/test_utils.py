"""
Unit tests for utility functions.
"""

import pytest
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from linktrack.utils import (
    format_day_label,
    format_tracking_url,
    generate_code,
    get_timezone,
    local_date,
    normalize_utc,
    utc_now,
    week_bounds,
)


class TestGenerateCode:
    """Tests for code generation."""

    def test_shape(self):
        code = generate_code(3, 2)
        assert len(code) == 5
        assert code[:3].isalpha() and code[:3].islower()
        assert code[3:].isdigit()

    def test_letters_only(self):
        assert generate_code(4, 0).isalpha()

    def test_codes_vary(self):
        codes = {generate_code(4, 2) for _ in range(50)}
        assert len(codes) > 1


class TestFormatTrackingUrl:
    """Tests for format_tracking_url function."""

    def test_project_url(self):
        assert format_tracking_url("ab123", "acme").endswith("/acme/ab123")

    def test_global_url(self):
        assert format_tracking_url("ab123").endswith("/l/ab123")

    def test_creator_and_submission(self):
        url = format_tracking_url("ab123", "acme", "alice", "sub2")
        assert url.endswith("/acme/ab123/alice/sub2")

    def test_submission_needs_creator(self):
        assert format_tracking_url("ab123", "acme", None, "sub2").endswith("/acme/ab123")


class TestTimeHelpers:
    """Tests for datetime helpers."""

    def test_utc_now_aware(self):
        assert utc_now().tzinfo is not None

    def test_normalize_naive(self):
        result = normalize_utc(datetime(2025, 1, 1, 12, 0))
        assert result == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_normalize_offset(self):
        plus_two = timezone(timedelta(hours=2))
        result = normalize_utc(datetime(2025, 1, 1, 12, 0, tzinfo=plus_two))
        assert result.hour == 10

    def test_normalize_none(self):
        assert normalize_utc(None) is None

    def test_unknown_timezone_falls_back_to_utc(self):
        assert get_timezone("Not/AZone") == timezone.utc

    def test_local_date_crosses_midnight(self):
        late = datetime(2025, 10, 8, 23, 30, tzinfo=timezone.utc)
        assert local_date(late, timezone(timedelta(hours=2))) == date(2025, 10, 9)

    @pytest.mark.parametrize("today", [date(2025, 10, 6) + timedelta(days=i) for i in range(7)])
    def test_week_bounds(self, today):
        assert week_bounds(today) == (date(2025, 10, 6), date(2025, 10, 12))

    def test_day_label(self):
        assert format_day_label(date(2025, 10, 6)) == "Oct 6"
        assert format_day_label(date(2025, 12, 25)) == "Dec 25"
