# Overview: Daily gold / exchange rate readings entered by staff; seeds the gold calculator.

from __future__ import annotations

import logging
import re
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import flag_modified

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..models import DailyMarketRate
from ..models.market import RATE_TYPES
from ..time_utils import parse_iso_date, utcnow
from ..validation import coerce_float
from .concurrency import commit_with_retry
from .gold_price_service import DEFAULT_GRADE, SIDE_SELL, GoldQuote, calculate_gold_price


logger = logging.getLogger(__name__)

RATE_TYPE_GOLD = "gold"
RATE_TYPE_EXCHANGE = "exchange_rate"

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_rate_type(value) -> str:
    if value not in RATE_TYPES:
        raise ValidationError(f"rate_type must be one of: {', '.join(RATE_TYPES)}")
    return value


def _coerce_rate_date(value) -> date:
    if value is None:
        return utcnow().date()
    if isinstance(value, date):
        return value
    try:
        parsed = parse_iso_date(str(value))
    except ValueError:
        raise ValidationError("rate_date must be an ISO-8601 date")
    return parsed or utcnow().date()


def _coerce_time(value) -> str:
    if value is None or value == "":
        return utcnow().strftime("%H:%M")
    text = str(value).strip()
    if not _TIME_RE.match(text):
        raise ValidationError("time must be HH:MM (24h)")
    return text


def record_rate(rate_type, rate_date, time, value) -> DailyMarketRate:
    """
    Append one reading to the day's row, creating the row if needed.

    rate_date defaults to today (UTC) and time to the current HH:MM.

    Readings stay sorted by time; a second reading at the same time
    replaces the first.
    """
    rate_type = validate_rate_type(rate_type)
    number = coerce_float(value, "value")
    if number <= 0:
        raise ValidationError("value must be > 0")
    day = _coerce_rate_date(rate_date)
    at = _coerce_time(time)

    row = db.session.query(DailyMarketRate).filter_by(rate_type=rate_type, rate_date=day).first()
    if row is None:
        row = DailyMarketRate(rate_type=rate_type, rate_date=day, hourly_rate=[])
        db.session.add(row)
        try:
            db.session.flush()
        except IntegrityError:
            # Another request created the day's row first
            db.session.rollback()
            row = db.session.query(DailyMarketRate).filter_by(rate_type=rate_type, rate_date=day).one()

    readings = [r for r in (row.hourly_rate or []) if r.get("time") != at]
    readings.append({"time": at, "value": number})
    readings.sort(key=lambda r: r["time"])
    row.hourly_rate = readings
    flag_modified(row, "hourly_rate")

    commit_with_retry()
    logger.info("Recorded %s rate %s at %s %s", rate_type, number, day.isoformat(), at)
    return row


def latest_rate(rate_type) -> dict:
    """
    Newest reading for a rate type: {rate_type, rate_date, time, value}.

    Raises:
        NotFound: No readings recorded yet
    """
    rate_type = validate_rate_type(rate_type)
    rows = (
        db.session.query(DailyMarketRate)
        .filter_by(rate_type=rate_type)
        .order_by(DailyMarketRate.rate_date.desc())
        .all()
    )
    for row in rows:
        reading = row.latest_reading()
        if reading is not None:
            return {
                "rate_type": rate_type,
                "rate_date": row.rate_date.isoformat(),
                "time": reading["time"],
                "value": reading["value"],
            }
    raise NotFound(f"No {rate_type} rate recorded", details={"rate_type": rate_type})


def list_rates(rate_type=None, limit: int = 30) -> list[DailyMarketRate]:
    q = db.session.query(DailyMarketRate)
    if rate_type:
        q = q.filter_by(rate_type=validate_rate_type(rate_type))
    return q.order_by(DailyMarketRate.rate_date.desc(), DailyMarketRate.id.desc()).limit(limit).all()


def quote_from_latest_rate(
    *,
    weight_grams: float,
    grade: str = DEFAULT_GRADE,
    side: str = SIDE_SELL,
    yway: int = 0,
    pe: int = 0,
) -> GoldQuote:
    """Gold quote using the newest recorded gold reading as the spot price."""
    spot = latest_rate(RATE_TYPE_GOLD)["value"]
    return calculate_gold_price(
        spot_price=spot, weight_grams=weight_grams, grade=grade, side=side, yway=yway, pe=pe,
    )
