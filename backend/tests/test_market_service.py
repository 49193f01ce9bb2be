from datetime import date

import pytest

from jewelry_pos.errors import NotFound, ValidationError
from jewelry_pos.services import market_service


def test_record_rate_keeps_readings_sorted(db_session):
    day = date(2026, 10, 19)
    market_service.record_rate("gold", day, "14:00", 3_050_000)
    market_service.record_rate("gold", day, "09:00", 3_000_000)
    row = market_service.record_rate("gold", day, "14:00", 3_060_000)

    assert row.hourly_rate == [
        {"time": "09:00", "value": 3_000_000.0},
        {"time": "14:00", "value": 3_060_000.0},
    ]
    assert len(market_service.list_rates("gold")) == 1


def test_latest_rate_uses_newest_day(db_session):
    market_service.record_rate("gold", "2026-10-18", "16:00", 2_900_000)
    market_service.record_rate("gold", "2026-10-19", "10:00", 3_100_000)
    market_service.record_rate("exchange_rate", "2026-10-19", "10:00", 4_500)

    latest = market_service.latest_rate("gold")
    assert latest == {"rate_type": "gold", "rate_date": "2026-10-19", "time": "10:00", "value": 3_100_000.0}


def test_latest_rate_without_readings(db_session):
    with pytest.raises(NotFound):
        market_service.latest_rate("gold")


@pytest.mark.parametrize("args", [
    ("silver", None, "10:00", 1),
    ("gold", None, "25:00", 1),
    ("gold", None, "10:00", 0),
    ("gold", None, "10:00", "abc"),
    ("gold", "19/10/2026", "10:00", 1),
])
def test_record_rate_rejects(db_session, args):
    with pytest.raises(ValidationError):
        market_service.record_rate(*args)


def test_quote_from_latest_rate(db_session):
    market_service.record_rate("gold", "2026-10-19", "10:00", 1_000_000)
    quote = market_service.quote_from_latest_rate(weight_grams=33.2)
    assert quote.spot_price == 1_000_000
    assert quote.final_price == pytest.approx(1_882_352.94, abs=0.01)
