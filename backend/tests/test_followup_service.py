import pytest

from coffee_finance.models import DayBookEntry, FollowUpTask, PaymentRecord, QualityAssessment
from coffee_finance.services import cash_service, followup_service, payment_service
from coffee_finance.services.notification_service import SmsGateway, payment_message
from coffee_finance.statuses import AssessmentStatus


class RecordingGateway(SmsGateway):
    def __init__(self, accept=True, error=None):
        self.sent = []
        self.accept = accept
        self.error = error

    def send(self, recipient, message, message_type):
        if self.error:
            raise self.error
        self.sent.append((recipient, message, message_type))
        return self.accept


def _pay(lot, **kwargs):
    return payment_service.process_payment(
        lot.batch_number, lot.supplier_id, lot.assessment_id, "Cash", lot.amount_ugx, **kwargs
    )


def test_supplier_receives_payment_sms(app, make_payable, make_advance, fund_cash, monkeypatch):
    gateway = RecordingGateway()
    monkeypatch.setitem(app.config, "SMS_GATEWAY", gateway)
    fund_cash(500000)
    make_advance(50000)
    lot = make_payable("CF-001", kilograms=75, price_ugx=2000)

    result = _pay(lot, advance_recovery_ugx=50000)

    assert result.warnings == []
    recipient, message, message_type = gateway.sent[0]
    assert recipient == "+256700000001"
    assert message_type == "payment"
    assert "UGX 150,000" in message
    assert "Advance recovered: UGX 50,000" in message


def test_declined_sms_is_a_warning_not_a_failure(app, make_payable, fund_cash, db_session, monkeypatch):
    monkeypatch.setitem(app.config, "SMS_GATEWAY", RecordingGateway(accept=False))
    fund_cash(500000)
    lot = make_payable("CF-002")

    result = _pay(lot)

    assert len(result.warnings) == 1
    assert "notification" in result.warnings[0]
    assert db_session.query(PaymentRecord).one().status == "Paid"
    assert cash_service.current_balance() == 300000

    task = db_session.query(FollowUpTask).filter_by(kind="notification").one()
    assert task.status == "pending"
    assert task.attempts == 1
    assert "not sent" in task.last_error


def test_gateway_exception_is_captured(app, make_payable, fund_cash, db_session, monkeypatch):
    monkeypatch.setitem(app.config, "SMS_GATEWAY", RecordingGateway(error=ConnectionError("gateway down")))
    fund_cash(500000)

    result = _pay(make_payable("CF-003"))

    assert "gateway down" in result.warnings[0]
    assert db_session.query(DayBookEntry).count() == 1


def test_disabled_sms_is_not_queued(app, make_payable, fund_cash, db_session, monkeypatch):
    monkeypatch.setitem(app.config, "SMS_ENABLED", False)
    fund_cash(500000)

    result = _pay(make_payable("CF-004"))

    assert result.warnings == []
    assert db_session.query(FollowUpTask).filter_by(kind="notification").count() == 0


def test_failed_day_book_keeps_payment_and_retries(make_payable, fund_cash, db_session, monkeypatch):
    def broken(payload):
        raise RuntimeError("day book offline")

    monkeypatch.setitem(followup_service.HANDLERS, "day_book", broken)
    fund_cash(500000)
    lot = make_payable("CF-005")

    result = _pay(lot)

    assert result.warnings == ["day_book follow-up #%d failed: RuntimeError: day book offline"
                               % db_session.query(FollowUpTask).filter_by(kind="day_book").one().id]
    assert db_session.query(DayBookEntry).count() == 0
    assert db_session.get(QualityAssessment, lot.assessment_id).status == AssessmentStatus.PAID.value

    monkeypatch.undo()
    summary = followup_service.retry_pending()

    assert summary == {"attempted": 1, "failed": 0, "warnings": []}
    assert db_session.query(DayBookEntry).one().batch_number == "CF-005"
    task = db_session.query(FollowUpTask).filter_by(kind="day_book").one()
    assert task.status == "done"
    assert task.attempts == 2
    assert task.last_error is None


def test_task_fails_permanently_after_max_attempts(app, make_payable, fund_cash, db_session, monkeypatch):
    monkeypatch.setitem(app.config, "FOLLOW_UP_MAX_ATTEMPTS", 2)
    monkeypatch.setitem(followup_service.HANDLERS, "assessment_status", lambda payload: 1 / 0)
    fund_cash(500000)

    _pay(make_payable("CF-006"))
    followup_service.retry_pending()

    task = db_session.query(FollowUpTask).filter_by(kind="assessment_status").one()
    assert task.status == "failed"
    assert task.attempts == 2
    assert "ZeroDivisionError" in task.last_error

    # Failed tasks are not picked up again
    assert followup_service.retry_pending()["attempted"] == 0
    assert followup_service.list_tasks(status="failed")[0].id == task.id


def test_assessment_update_is_idempotent(make_payable, fund_cash, db_session):
    fund_cash(500000)
    lot = make_payable("CF-007")
    _pay(lot)

    followup_service.HANDLERS["assessment_status"]({"assessment_id": lot.assessment_id, "status": "paid"})
    assert db_session.get(QualityAssessment, lot.assessment_id).status == "paid"


def test_payment_message_for_bank_transfer():
    text = payment_message(supplier_name="Kato Farm", batch_number="CF-9", amount_ugx=1200000,
                           advance_recovered_ugx=0, method="Bank Transfer")
    assert text == "Dear Kato Farm, payment of UGX 1,200,000 for coffee batch CF-9 has been submitted for bank transfer."
