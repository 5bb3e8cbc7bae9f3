from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from hostledger.services import wallets
from hostledger.services.payouts import PayoutLedger, PayoutStateError
from hostledger.services.paypal import PayPalPayoutClient, PayPalPayoutError


def _ledger(settings, session) -> PayoutLedger:
    return PayoutLedger(settings=settings, transfer_client=PayPalPayoutClient(settings=settings, session=session))


def test_cash_in_reference_is_credited_once(db, make_user):
    guest = make_user("Guest", balance=Decimal("0"))
    wallets.cash_in(db, guest.id, Decimal("500"), payment_reference="CAPTURE-1")
    db.commit()

    with pytest.raises(wallets.DuplicatePaymentError):
        wallets.cash_in(db, guest.id, Decimal("500"), payment_reference="CAPTURE-1")
    assert wallets.get_balance(db, guest.id) == Decimal("500")


def test_withdrawal_request_reserves_balance(db, make_user):
    host = make_user("Host", role="host", balance=Decimal("2000"))

    transaction = wallets.request_withdrawal(db, host.id, Decimal("565"), "host@paypal.example")
    db.commit()

    assert transaction.type == "cash_out"
    assert transaction.status == "pending"
    assert wallets.get_balance(db, host.id) == Decimal("1435")
    assert wallets.ledger_balance(db, host.id) == Decimal("1435")


def test_withdrawal_request_rejects_bad_email(db, make_user):
    host = make_user("Host", role="host", balance=Decimal("100"))
    with pytest.raises(wallets.WalletError):
        wallets.request_withdrawal(db, host.id, Decimal("50"), "not-an-email")


def test_withdrawal_request_rejects_overdraft(db, make_user):
    host = make_user("Host", role="host", balance=Decimal("100"))
    with pytest.raises(wallets.InsufficientFundsError):
        wallets.request_withdrawal(db, host.id, Decimal("150"), "host@paypal.example")


def test_process_withdrawal_records_batch_id(db, make_user, live_settings, fake_paypal, fake_response, paypal_token):
    host = make_user("Host", role="host", balance=Decimal("1130"))
    admin = make_user("Admin", is_admin=True)
    transaction = wallets.request_withdrawal(db, host.id, Decimal("1130"), "host@paypal.example")
    db.commit()

    session = fake_paypal(
        [
            paypal_token(),
            fake_response(201, {"batch_header": {"payout_batch_id": "5UXD2E8A7EBQJ", "batch_status": "PENDING"}}),
        ]
    )
    processed = _ledger(live_settings, session).process_withdrawal(db, transaction.id, admin.id)

    assert processed.status == "completed"
    assert processed.payout_batch_id == "5UXD2E8A7EBQJ"
    assert processed.processed_by == admin.id
    assert processed.processed_at is not None

    payout_call = session.calls[1]
    assert payout_call["url"].endswith("/v1/payments/payouts")
    item = payout_call["json"]["items"][0]
    assert item["receiver"] == "host@paypal.example"
    assert item["amount"] == {"value": "20.00", "currency": "USD"}


def test_failed_transfer_leaves_withdrawal_pending(db, make_user, live_settings, fake_paypal, fake_response, paypal_token):
    host = make_user("Host", role="host", balance=Decimal("500"))
    admin = make_user("Admin", is_admin=True)
    transaction = wallets.request_withdrawal(db, host.id, Decimal("500"), "host@paypal.example")
    db.commit()

    session = fake_paypal(
        [
            paypal_token(),
            fake_response(422, {"name": "INSUFFICIENT_FUNDS"}, reason="Unprocessable Entity"),
        ]
    )
    with pytest.raises(PayPalPayoutError) as excinfo:
        _ledger(live_settings, session).process_withdrawal(db, transaction.id, admin.id)

    assert "insufficient funds" in str(excinfo.value)
    db.expire_all()
    reloaded = wallets.get_withdrawal(db, transaction.id)
    assert reloaded.status == "pending"
    assert reloaded.payout_batch_id is None


class MalformedResponse:
    status_code = 200
    reason = "OK"
    ok = True
    text = "<html>upstream gateway</html>"

    def json(self):
        raise ValueError("Expecting value: line 1 column 1 (char 0)")


class ExplodingTransfer:
    def send_payout(self, amount, recipient_email, reference):
        raise RuntimeError("connection pool exhausted")


def test_malformed_success_response_leaves_withdrawal_pending(
    db, make_user, live_settings, fake_paypal, fake_response, paypal_token
):
    host = make_user("Host", role="host", balance=Decimal("400"))
    admin = make_user("Admin", is_admin=True)
    transaction = wallets.request_withdrawal(db, host.id, Decimal("400"), "host@paypal.example")
    db.commit()

    with pytest.raises(PayPalPayoutError) as excinfo:
        _ledger(live_settings, fake_paypal([paypal_token(), MalformedResponse()])).process_withdrawal(
            db, transaction.id, admin.id
        )
    assert "malformed" in str(excinfo.value)

    db.expire_all()
    assert wallets.get_withdrawal(db, transaction.id).status == "pending"

    retry = fake_paypal([paypal_token(), fake_response(201, {"batch_header": {"payout_batch_id": "RETRY42"}})])
    processed = _ledger(live_settings, retry).process_withdrawal(db, transaction.id, admin.id)
    assert processed.status == "completed"
    assert processed.payout_batch_id == "RETRY42"


def test_token_response_without_access_token_is_a_failure(
    db, make_user, live_settings, fake_paypal, fake_response
):
    host = make_user("Host", role="host", balance=Decimal("250"))
    admin = make_user("Admin", is_admin=True)
    transaction = wallets.request_withdrawal(db, host.id, Decimal("250"), "host@paypal.example")
    db.commit()

    session = fake_paypal([fake_response(200, {"token_type": "Bearer"})])
    with pytest.raises(PayPalPayoutError) as excinfo:
        _ledger(live_settings, session).process_withdrawal(db, transaction.id, admin.id)
    assert "authentication" in str(excinfo.value)

    db.expire_all()
    assert wallets.get_withdrawal(db, transaction.id).status == "pending"


def test_unexpected_transfer_error_leaves_withdrawal_pending(db, make_user, live_settings):
    host = make_user("Host", role="host", balance=Decimal("150"))
    admin = make_user("Admin", is_admin=True)
    transaction = wallets.request_withdrawal(db, host.id, Decimal("150"), "host@paypal.example")
    db.commit()

    ledger = PayoutLedger(settings=live_settings, transfer_client=ExplodingTransfer())
    with pytest.raises(RuntimeError):
        ledger.process_withdrawal(db, transaction.id, admin.id)

    db.expire_all()
    assert wallets.get_withdrawal(db, transaction.id).status == "pending"
    assert wallets.get_balance(db, host.id) == Decimal("0")


def test_missing_batch_id_is_a_failure(db, make_user, live_settings, fake_paypal, fake_response, paypal_token):
    host = make_user("Host", role="host", balance=Decimal("300"))
    admin = make_user("Admin", is_admin=True)
    transaction = wallets.request_withdrawal(db, host.id, Decimal("300"), "host@paypal.example")
    db.commit()

    session = fake_paypal([paypal_token(), fake_response(201, {"batch_header": {}})])
    with pytest.raises(PayPalPayoutError):
        _ledger(live_settings, session).process_withdrawal(db, transaction.id, admin.id)

    db.expire_all()
    assert wallets.get_withdrawal(db, transaction.id).status == "pending"


def test_completed_withdrawal_cannot_be_processed_again(db, make_user, ledger):
    host = make_user("Host", role="host", balance=Decimal("300"))
    admin = make_user("Admin", is_admin=True)
    transaction = wallets.request_withdrawal(db, host.id, Decimal("300"), "host@paypal.example")
    db.commit()

    processed = ledger.process_withdrawal(db, transaction.id, admin.id)
    assert processed.payout_batch_id.startswith("BATCH-")

    with pytest.raises(PayoutStateError):
        ledger.process_withdrawal(db, transaction.id, admin.id)


def test_unknown_withdrawal(db, make_user, ledger):
    admin = make_user("Admin", is_admin=True)
    with pytest.raises(wallets.WalletTransactionNotFoundError):
        ledger.process_withdrawal(db, uuid.uuid4(), admin.id)


def test_list_withdrawals_filters(db, make_user, ledger):
    host = make_user("Host", role="host", balance=Decimal("1000"))
    admin = make_user("Admin", is_admin=True)
    first = wallets.request_withdrawal(db, host.id, Decimal("100"), "host@paypal.example")
    second = wallets.request_withdrawal(db, host.id, Decimal("200"), "host@paypal.example")
    db.commit()
    ledger.process_withdrawal(db, first.id, admin.id)

    assert [t.id for t in ledger.list_withdrawals(db, "pending")] == [second.id]
    assert [t.id for t in ledger.list_withdrawals(db, "completed")] == [first.id]
    assert len(ledger.list_withdrawals(db, "all")) == 2
