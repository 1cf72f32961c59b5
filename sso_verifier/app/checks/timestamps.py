"""
Conditions validity window.

Every Conditions element (matched on local name) is checked against the
injected current time, widened by the clock-skew tolerance:

    NotBefore     > now + skew   -> not yet valid
    NotOnOrAfter <= now - skew   -> expired

An attribute that is absent imposes no bound. A value that is present but
not an xs:dateTime is rejected: a window that cannot be read cannot be
shown to contain "now".

Parsing limits: years must have exactly four digits (0001-9999), since
``datetime`` cannot hold anything else. The end-of-day form ``24:00:00``
is accepted and means midnight of the following day.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from lxml import etree

from sso_verifier.app.schemas.outcome import FailureReason, ValidationFailure
from sso_verifier.app.utils.clock import ensure_aware

logger = logging.getLogger(__name__)

_XS_DATETIME = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})T(?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})?$"
)

_END_OF_DAY = "24:00:00"


def parse_saml_datetime(value: str) -> datetime:
    """
    Parse an xs:dateTime into an aware datetime.

    Values without an offset are UTC, as SAML 2.0 requires. Fractional
    seconds beyond microseconds are truncated.
    """
    match = _XS_DATETIME.match(value.strip())
    if not match:
        raise ValueError(f"Not an xs:dateTime value: {value!r}")

    time = match.group("time")
    fraction = match.group("fraction")

    end_of_day = time == _END_OF_DAY
    if end_of_day:
        if fraction and fraction.strip("0"):
            raise ValueError(f"Not an xs:dateTime value: {value!r}")
        time, fraction = "00:00:00", None

    text = f"{match.group('date')}T{time}"
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")

    tz = match.group("tz")
    if tz and tz != "Z":
        text += tz

    parsed = ensure_aware(datetime.fromisoformat(text))
    if end_of_day:
        parsed += timedelta(days=1)
    return parsed


def _failure(failure_id: str, title: str, description: str, **metadata) -> ValidationFailure:
    return ValidationFailure(
        failure_id=failure_id,
        reason=FailureReason.TIMESTAMP_OUT_OF_WINDOW,
        title=title,
        description=description,
        location="Conditions",
        metadata=metadata or None,
    )


def run_timestamp_checks(
    document: etree._ElementTree,
    now: datetime,
    skew_seconds: int,
) -> Optional[ValidationFailure]:
    now = ensure_aware(now)
    skew = timedelta(seconds=skew_seconds)
    latest_allowed_start = now + skew
    earliest_allowed_end = now - skew

    for conditions in document.getroot().iter(etree.Element):
        if etree.QName(conditions).localname != "Conditions":
            continue

        for attribute in ("NotBefore", "NotOnOrAfter"):
            raw = conditions.get(attribute)
            if raw is None:
                continue

            try:
                instant = parse_saml_datetime(raw)
            except ValueError as exc:
                logger.warning("Malformed Conditions/@%s: %s", attribute, exc)
                return _failure(
                    "TIME-CRIT-003",
                    "Malformed validity timestamp",
                    f"Conditions/@{attribute} could not be parsed: {exc}",
                    attribute=attribute,
                    value=raw,
                )

            if attribute == "NotBefore" and instant > latest_allowed_start:
                logger.warning(
                    "Assertion not yet valid: NotBefore=%s now=%s skew=%ss",
                    instant.isoformat(), now.isoformat(), skew_seconds,
                )
                return _failure(
                    "TIME-CRIT-001",
                    "Assertion not yet valid",
                    (
                        f"NotBefore {instant.isoformat()} is later than "
                        f"{latest_allowed_start.isoformat()} (now plus "
                        f"{skew_seconds}s skew). Check clock settings."
                    ),
                    attribute=attribute,
                    value=raw,
                )

            if attribute == "NotOnOrAfter" and instant <= earliest_allowed_end:
                logger.warning(
                    "Assertion expired: NotOnOrAfter=%s now=%s skew=%ss",
                    instant.isoformat(), now.isoformat(), skew_seconds,
                )
                return _failure(
                    "TIME-CRIT-002",
                    "Assertion expired",
                    (
                        f"NotOnOrAfter {instant.isoformat()} is not later than "
                        f"{earliest_allowed_end.isoformat()} (now minus "
                        f"{skew_seconds}s skew)."
                    ),
                    attribute=attribute,
                    value=raw,
                )

    return None
