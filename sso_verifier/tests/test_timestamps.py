"""
Tests for the Conditions validity window.

Coverage matrix (skew = 180s):

  NotBefore     now + 180s    -> pass (boundary)
  NotBefore     now + 181s    -> TIME-CRIT-001
  NotOnOrAfter  now - 179s    -> pass
  NotOnOrAfter  now - 180s    -> TIME-CRIT-002 (boundary)
  absent bounds               -> pass
  unparseable value           -> TIME-CRIT-003
  T24:00:00                   -> midnight of the following day
"""

from datetime import datetime, timedelta, timezone

import pytest

from sso_verifier.app.checks.timestamps import (
    parse_saml_datetime,
    run_timestamp_checks,
)
from sso_verifier.app.schemas.outcome import FailureReason
from sso_verifier.tests.fixtures.saml_factory import NOW, unsigned_response

SKEW = 180


def _window(not_before=None, not_on_or_after=None, **raw):
    return unsigned_response(
        not_before=NOW + timedelta(seconds=not_before) if not_before is not None else None,
        not_on_or_after=(
            NOW + timedelta(seconds=not_on_or_after)
            if not_on_or_after is not None
            else None
        ),
        **raw,
    )


# ---------------------------------------------------------------------------
# Boundaries
# ---------------------------------------------------------------------------

def test_current_window_passes():
    assert run_timestamp_checks(_window(-60, 300), NOW, SKEW) is None


def test_not_before_at_skew_boundary_passes():
    assert run_timestamp_checks(_window(not_before=180), NOW, SKEW) is None


def test_not_before_past_skew_boundary_fails():
    failure = run_timestamp_checks(_window(not_before=181), NOW, SKEW)

    assert failure.reason is FailureReason.TIMESTAMP_OUT_OF_WINDOW
    assert failure.failure_id == "TIME-CRIT-001"
    assert failure.metadata["attribute"] == "NotBefore"


def test_not_on_or_after_inside_skew_passes():
    assert run_timestamp_checks(_window(not_on_or_after=-179), NOW, SKEW) is None


def test_not_on_or_after_at_skew_boundary_fails():
    failure = run_timestamp_checks(_window(not_on_or_after=-180), NOW, SKEW)

    assert failure.failure_id == "TIME-CRIT-002"
    assert failure.metadata["attribute"] == "NotOnOrAfter"


def test_zero_skew_is_strict():
    document = _window(not_before=1)

    assert run_timestamp_checks(document, NOW, 0).failure_id == "TIME-CRIT-001"


def test_absent_bounds_impose_no_limit():
    assert run_timestamp_checks(_window(), NOW, SKEW) is None


def test_naive_now_is_treated_as_utc():
    naive_now = NOW.replace(tzinfo=None)

    assert run_timestamp_checks(_window(-60, 300), naive_now, SKEW) is None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def test_malformed_timestamp_fails_closed():
    document = _window(not_on_or_after_raw="tomorrow")

    failure = run_timestamp_checks(document, NOW, SKEW)

    assert failure.failure_id == "TIME-CRIT-003"
    assert failure.metadata == {"attribute": "NotOnOrAfter", "value": "tomorrow"}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-05-01T12:00:00Z", datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)),
        ("2024-05-01T12:00:00", datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)),
        (
            "2024-05-01T12:00:00.123Z",
            datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=timezone.utc),
        ),
        (
            "2024-05-01T12:00:00.1234567891Z",
            datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc),
        ),
        (
            "2024-05-01T14:00:00+02:00",
            datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc),
        ),
        ("2024-05-01T24:00:00Z", datetime(2024, 5, 2, 0, 0, 0, tzinfo=timezone.utc)),
        ("2024-12-31T24:00:00.000Z", datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)),
    ],
)
def test_parse_saml_datetime(value, expected):
    assert parse_saml_datetime(value) == expected


@pytest.mark.parametrize(
    "value",
    [
        "",
        "2024-05-01",
        "2024-05-01 12:00:00Z",
        "12:00:00Z",
        "2024-05-01T12:00:00+0200",
        "2024-05-01T24:00:00.5Z",
        "2024-05-01T24:30:00Z",
        "12024-05-01T12:00:00Z",
    ],
)
def test_parse_saml_datetime_rejects_non_xs_datetime(value):
    with pytest.raises(ValueError):
        parse_saml_datetime(value)


def test_offset_timestamp_is_compared_in_utc():
    # 13:04:00+01:00 == 12:04:00Z, inside the window.
    document = _window(not_on_or_after_raw="2024-05-01T13:04:00+01:00")

    assert run_timestamp_checks(document, NOW, SKEW) is None


def test_end_of_day_not_on_or_after_keeps_window_open():
    document = _window(not_on_or_after_raw="2024-05-01T24:00:00Z")

    assert run_timestamp_checks(document, NOW, SKEW) is None


def test_end_of_previous_day_not_on_or_after_is_expired():
    # 2024-04-30T24:00:00Z is midnight at the start of 2024-05-01.
    document = _window(not_on_or_after_raw="2024-04-30T24:00:00Z")

    assert run_timestamp_checks(document, NOW, SKEW).failure_id == "TIME-CRIT-002"
