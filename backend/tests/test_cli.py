import pytest

from factories import pawn_draft, manual_line
from jewelry_pos.models import Invoice
from jewelry_pos.services import invoice_service, market_service


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def test_pricing_quote_with_spot(runner, db_session):
    result = runner.invoke(args=["pricing", "quote", "--weight", "33.2", "--spot", "1000000"])
    assert result.exit_code == 0
    assert "Final price:     1,882,352.94" in result.output


def test_pricing_quote_buy_side(runner, db_session):
    result = runner.invoke(args=[
        "pricing", "quote", "--weight", "33.2", "--spot", "1000000",
        "--side", "buy", "--yway", "2", "--pe", "3",
    ])
    assert result.exit_code == 0
    assert "Deduction:       190,429.69" in result.output
    assert "Final price:     1,684,570.31" in result.output


def test_pricing_quote_uses_latest_rate(runner, db_session):
    no_rate = runner.invoke(args=["pricing", "quote", "--weight", "16.6"])
    assert no_rate.exit_code != 0
    assert "No gold rate recorded" in no_rate.output

    market_service.record_rate("gold", "2026-10-19", "09:30", 1_700_000)
    result = runner.invoke(args=["pricing", "quote", "--weight", "16.6"])
    assert result.exit_code == 0
    assert "Spot price:      1,700,000.00" in result.output


def test_mark_overdue_command(runner, db_session):
    late = invoice_service.create_invoice(pawn_draft(manual_line(), due_in_days=-3))

    result = runner.invoke(args=["invoices", "mark-overdue"])

    assert result.exit_code == 0
    assert late.invoice_number in result.output
    assert "PASS 1 pawn invoice(s) marked overdue" in result.output
    assert db_session.get(Invoice, late.id).status == "overdue"


def test_apply_pending_with_nothing_pending(runner, db_session):
    result = runner.invoke(args=["invoices", "apply-pending"])
    assert result.exit_code == 0
    assert "Applied: 0  Failed: 0" in result.output


def test_apply_pending_unknown_invoice(runner, db_session):
    result = runner.invoke(args=["invoices", "apply-pending", "--invoice-id", "404"])
    assert result.exit_code != 0
    assert "not_found" in result.output
