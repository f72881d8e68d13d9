"""Tests for settings validation."""

import pytest
from pydantic import ValidationError

from slawatch.config import Settings


def test_defaults():
    s = Settings(_env_file=None)
    assert s.warning_window_minutes == 15
    assert s.dedup_lookback_minutes == 60
    assert s.tick_interval_minutes == 1
    assert s.notification_retention_days == 7


def test_environment_must_be_known():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, environment="qa")


def test_tick_interval_range():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, tick_interval_minutes=6)


def test_dedup_lookback_must_outlast_tick():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, dedup_lookback_minutes=2, tick_interval_minutes=3)


def test_dedup_lookback_must_outlast_warning_window():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, dedup_lookback_minutes=15, warning_window_minutes=15)
    Settings(_env_file=None, dedup_lookback_minutes=16, warning_window_minutes=15)
