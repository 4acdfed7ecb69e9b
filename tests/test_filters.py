"""
Unit Tests for filter settings and the event table (quakemap/feeds/filters.py)
"""

from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from quakemap.feeds.filters import TABLE_COLUMNS, TIME_RANGES, FilterSettings, earthquake_table
from tests.conftest import make_feature


class TestFilterSettings:
    """Test filter-panel state and the derived query."""

    def test_defaults(self):
        settings = FilterSettings()
        assert settings.query_params() == {"days": 7, "min_magnitude": 5.0}
        assert not settings.is_custom

    @pytest.mark.parametrize("label, days", [("24 Hours", 1), ("7 Days", 7), ("30 Days", 30)])
    def test_presets(self, label, days):
        assert FilterSettings(time_range=label).lookback_days() == days

    def test_preset_labels(self):
        assert [r.label for r in TIME_RANGES] == ["24 Hours", "7 Days", "30 Days", "Custom Range"]

    def test_magnitude_is_clamped(self):
        assert FilterSettings(min_magnitude=2.0).min_magnitude == 4.0
        assert FilterSettings(min_magnitude=9.5).min_magnitude == 9.0
        assert FilterSettings(min_magnitude=6.5).min_magnitude == 6.5

    def test_custom_days(self):
        settings = FilterSettings(time_range="Custom Range", custom_days=45)

        assert settings.is_custom
        assert settings.lookback_days() == 45
        assert FilterSettings(time_range="Custom Range", custom_days=0).lookback_days() == 1
        assert FilterSettings(time_range="Custom Range", custom_days=1000).lookback_days() == 365

    def test_custom_date_range(self):
        start = datetime(2024, 3, 1, tzinfo=timezone.utc)
        settings = FilterSettings(
            time_range="Custom Range",
            custom_start=start,
            custom_end=start + timedelta(days=10, hours=3),
        )
        assert settings.lookback_days() == 11

    def test_same_day_range_is_one_day(self):
        moment = datetime(2024, 3, 1, tzinfo=timezone.utc)
        settings = FilterSettings(time_range="Custom Range", custom_start=moment, custom_end=moment)
        assert settings.lookback_days() == 1

    def test_unknown_time_range(self):
        with pytest.raises(ValueError, match="Unknown time range"):
            FilterSettings(time_range="Forever")


class TestEarthquakeTable:
    """Test the list-panel table."""

    def test_sorted_by_magnitude(self, sample_features):
        table = earthquake_table(sample_features)

        assert list(table.columns) == TABLE_COLUMNS
        assert table["magnitude"].tolist() == [7.2, 6.4, 5.1, 4.6, 3.8]
        assert table.iloc[0]["location"] == "Off the coast of Honshu, Japan"

    def test_ties_keep_input_order(self):
        records = [
            make_feature("a", 0.0, 0.0, 5.0),
            make_feature("b", 1.0, 1.0, 6.0),
            make_feature("c", 2.0, 2.0, 5.0),
        ]
        assert earthquake_table(records)["id"].tolist() == ["b", "a", "c"]

    def test_invalid_records_dropped(self, sample_features):
        records = sample_features + [make_feature("bad", 0.0, 0.0, None)]
        assert len(earthquake_table(records)) == len(sample_features)

    def test_empty(self):
        table = earthquake_table([])

        assert isinstance(table, pd.DataFrame)
        assert table.empty
        assert list(table.columns) == TABLE_COLUMNS

    def test_formatted_time(self, tohoku_feature):
        row = earthquake_table([tohoku_feature]).iloc[0]

        assert row["time"] == "Mar 11, 2011, 05:46 AM"
        assert row["timestamp"] == 1299822384120
        assert row["depth"] == 29.0
