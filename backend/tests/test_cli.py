from coffee_finance.models import CashBalance
from coffee_finance.services import cash_service


def test_cash_commands(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["cash", "deposit", "--amount", "250000", "--actor", "Treasurer"])
    assert result.exit_code == 0
    assert "Balance: UGX 250,000" in result.output

    result = runner.invoke(args=["cash", "balance"])
    assert "UGX 250,000" in result.output

    result = runner.invoke(args=["cash", "reconcile"])
    assert result.exit_code == 0
    assert "PASS" in result.output


def test_reconcile_reports_drift(app, db_session):
    runner = app.test_cli_runner()
    runner.invoke(args=["cash", "deposit", "--amount", "1000", "--actor", "Treasurer"])
    db_session.query(CashBalance).update({"current_balance_ugx": 900})
    db_session.commit()

    result = runner.invoke(args=["cash", "reconcile"])
    assert result.exit_code == 1
    assert "WARN Drift of UGX -100" in result.output


def test_deposit_rejects_bad_amount(app, db_session):
    result = app.test_cli_runner().invoke(args=["cash", "deposit", "--amount", "0", "--actor", "Treasurer"])
    assert result.exit_code != 0
    assert "amount_ugx must be > 0" in result.output


def test_pending_deposit_commands(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["cash", "deposit", "--amount", "40000", "--actor", "Clerk", "--pending"])
    assert result.exit_code == 0
    assert "logged as pending" in result.output
    assert cash_service.current_balance() == 0

    txn_id = cash_service.list_pending_deposits()[0].id
    result = runner.invoke(args=["cash", "pending"])
    assert f"#{txn_id}  UGX 40,000" in result.output

    result = runner.invoke(args=["cash", "confirm-deposit", str(txn_id), "--actor", "Finance Manager"])
    assert result.exit_code == 0
    assert "Balance: UGX 40,000" in result.output

    result = runner.invoke(args=["cash", "confirm-deposit", str(txn_id), "--actor", "Finance Manager"])
    assert result.exit_code != 0
    assert "already confirmed" in result.output

    result = runner.invoke(args=["cash", "pending"])
    assert "No pending deposits" in result.output


def test_approvals_list_and_followups(app, make_payable, fund_cash):
    fund_cash(500000)
    lot = make_payable("CF-001")
    from coffee_finance.services import payment_service
    payment_service.process_payment(lot.batch_number, lot.supplier_id, lot.assessment_id, "bank", lot.amount_ugx)

    runner = app.test_cli_runner()
    result = runner.invoke(args=["approvals", "list"])
    assert "Coffee Payment - Kato Farm" in result.output

    result = runner.invoke(args=["followups", "retry"])
    assert "Attempted 0 task(s), 0 failed" in result.output
