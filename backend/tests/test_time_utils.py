"""
Datetime parsing and serialization helpers.
"""

from datetime import datetime, timezone

import pytest

from orderledger.time_utils import parse_iso_datetime, to_utc_z


class TestParseIsoDatetime:

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty(self, value):
        assert parse_iso_datetime(value) is None

    def test_date_only_is_midnight(self):
        assert parse_iso_datetime("2031-03-01") == datetime(2031, 3, 1)

    def test_naive_is_returned_as_utc(self):
        parsed = parse_iso_datetime("2031-03-01T09:30")
        assert parsed == datetime(2031, 3, 1, 9, 30)
        assert parsed.tzinfo is None

    @pytest.mark.parametrize("value", ["2031-03-01T09:30:00Z", "2031-03-01T15:00:00+05:30"])
    def test_offsets_are_converted(self, value):
        parsed = parse_iso_datetime(value)
        assert parsed == datetime(2031, 3, 1, 9, 30)
        assert parsed.tzinfo is None

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_iso_datetime("next tuesday")


class TestToUtcZ:

    def test_naive_treated_as_utc(self):
        assert to_utc_z(datetime(2031, 3, 1, 9, 30, 15, 999)) == "2031-03-01T09:30:15Z"

    def test_aware_converted(self):
        aware = datetime(2031, 3, 1, 9, 30, tzinfo=timezone.utc)
        assert to_utc_z(aware) == "2031-03-01T09:30:00Z"

    def test_none(self):
        assert to_utc_z(None) is None
