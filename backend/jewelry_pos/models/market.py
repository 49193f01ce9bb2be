from __future__ import annotations

from ..extensions import db
from jewelry_pos.time_utils import to_utc_z


RATE_TYPES = ("gold", "exchange_rate")


class DailyMarketRate(db.Model):
    """
    One day's readings for a market rate, entered by staff.

    hourly_rate is an ordered JSON list of {"time": "HH:MM", "value": float}.
    """
    __tablename__ = "daily_market_rates"
    __table_args__ = (
        db.UniqueConstraint("rate_type", "rate_date", name="uq_daily_market_rates_type_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    rate_type = db.Column(db.String(16), nullable=False)
    rate_date = db.Column(db.Date, nullable=False, index=True)
    hourly_rate = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def latest_reading(self) -> dict | None:
        readings = self.hourly_rate or []
        return readings[-1] if readings else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rate_type": self.rate_type,
            "rate_date": self.rate_date.isoformat() if self.rate_date else None,
            "hourly_rate": list(self.hourly_rate or []),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
