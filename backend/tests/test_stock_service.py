from types import SimpleNamespace

import pytest

from jewelry_pos.errors import InsufficientStock, NotFound, StockUpdateFailed
from jewelry_pos.results import Result
from jewelry_pos.services.stock_service import (
    StockDelta,
    apply_deltas,
    plan_stock_deltas,
    validate_availability,
)


def _line(item_id, quantity):
    return SimpleNamespace(item_id=item_id, quantity=quantity)


class FakeCatalog:
    """In-memory ItemCatalog; items listed in fail_on refuse every update."""

    def __init__(self, stock, fail_on=()):
        self.stock = dict(stock)
        self.fail_on = set(fail_on)
        self.calls = []

    def get_by_id(self, item_id):
        if item_id not in self.stock:
            return Result.fail(NotFound(f"Item {item_id} not found"))
        return Result.ok(SimpleNamespace(id=item_id, stock=self.stock[item_id]))

    def apply_stock_delta(self, item_id, delta):
        self.calls.append((item_id, delta))
        if item_id not in self.stock:
            return Result.fail(NotFound(f"Item {item_id} not found"))
        if item_id in self.fail_on or self.stock[item_id] + delta < 0:
            return Result.fail(InsufficientStock(f"Insufficient stock for item {item_id}"))
        self.stock[item_id] += delta
        return Result.ok(SimpleNamespace(id=item_id, stock=self.stock[item_id]))


def test_sales_plan_merges_lines_per_item():
    deltas = plan_stock_deltas("sales", [_line(1, 2), _line(2, 1), _line(1, 3), _line(None, 4)])
    assert deltas == (StockDelta(1, -5), StockDelta(2, -1))


def test_pawn_plan_is_empty():
    assert plan_stock_deltas("pawn", [_line(1, 2)]) == ()


def test_buy_plan_increments_unless_skipped():
    assert plan_stock_deltas("buy", [_line(7, 2)]) == (StockDelta(7, 2),)
    assert plan_stock_deltas("buy", [_line(7, 2)], skip_stock_update=True) == ()


def test_availability_lists_every_short_item():
    catalog = FakeCatalog({1: 1, 2: 0, 3: 10})
    with pytest.raises(InsufficientStock) as exc:
        validate_availability(catalog, [StockDelta(1, -2), StockDelta(2, -1), StockDelta(3, -1)])

    short = {entry["item_id"] for entry in exc.value.details["items"]}
    assert short == {1, 2}
    assert catalog.calls == []


def test_availability_unknown_item():
    with pytest.raises(NotFound):
        validate_availability(FakeCatalog({}), [StockDelta(9, 1)])


def test_apply_deltas_compensates_on_failure():
    catalog = FakeCatalog({1: 5, 2: 5, 3: 5}, fail_on={3})
    application = apply_deltas(catalog, [StockDelta(1, -1), StockDelta(2, -2), StockDelta(3, -1)])

    assert not application.ok
    assert application.compensated
    assert isinstance(application.error, InsufficientStock)
    assert catalog.stock == {1: 5, 2: 5, 3: 5}


def test_apply_deltas_reports_unreversed_deltas():
    class StuckCatalog(FakeCatalog):
        def apply_stock_delta(self, item_id, delta):
            # Item 1 accepts the first change and then refuses everything
            if item_id == 1 and any(c[0] == 1 for c in self.calls):
                self.calls.append((item_id, delta))
                return Result.fail(NotFound("gone"))
            return super().apply_stock_delta(item_id, delta)

    catalog = StuckCatalog({1: 5, 2: 5}, fail_on={2})
    application = apply_deltas(catalog, [StockDelta(1, -1), StockDelta(2, -1)])

    assert not application.ok
    assert not application.compensated
    assert application.applied == (StockDelta(1, -1),)


def test_apply_deltas_reverses_when_catalog_raises():
    class FlakyCatalog(FakeCatalog):
        def apply_stock_delta(self, item_id, delta):
            if item_id == 2:
                raise RuntimeError("connection reset")
            return super().apply_stock_delta(item_id, delta)

    catalog = FlakyCatalog({1: 5, 2: 5})
    application = apply_deltas(catalog, [StockDelta(1, -2), StockDelta(2, -1)])

    assert not application.ok
    assert application.compensated
    assert isinstance(application.error, StockUpdateFailed)
    assert catalog.stock == {1: 5, 2: 5}
