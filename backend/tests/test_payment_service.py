import pytest
from sqlalchemy import create_engine, text

from bizledger import create_app
from bizledger.extensions import db
from bizledger.models import Payment, Sale
from bizledger.services import business_service, payment_service, sales_service, settlement_service
from bizledger.services.payment_service import PaymentError
from bizledger.validation import InvalidPaymentMethod, NonPositivePayment, SaleRefunded


@pytest.fixture
def credit_sale(db_session, business):
    return sales_service.checkout(
        business.id, [{"quantity": 2, "unit_price": 5000}], amount_tendered=0,
    )


def test_follow_up_payments(db_session, credit_sale):
    payment_service.record_payment(credit_sale.id, 2500, method="card", reference="POS-1")
    summary = payment_service.get_payment_summary(credit_sale.id)
    assert summary["amount_paid_cents"] == 250000
    assert summary["balance_due_cents"] == 750000
    assert summary["payment_status"] == "partial"

    payment_service.record_payment(credit_sale.id, 7500, method="paystack")
    summary = payment_service.get_payment_summary(credit_sale.id)
    assert summary["amount_paid_cents"] == 1000000
    assert summary["balance_due_cents"] == 0
    assert summary["payment_status"] == "completed"
    assert [p["payment_method"] for p in summary["payments"]] == ["card", "paystack"]
    assert summary["payments"][0]["reference"] == "POS-1"


def test_overpayment_is_absorbed(db_session, credit_sale):
    payment = payment_service.record_payment(credit_sale.id, 12000)
    assert payment.amount_cents == 1200000

    sale = db_session.get(Sale, credit_sale.id)
    assert sale.amount_paid_cents == 1200000
    assert sale.balance_due_cents == 0
    assert sale.payment_status == "completed"
    assert payment_service.verify_sale_consistency(sale.id) == []


def test_payment_on_completed_sale_keeps_status(db_session, credit_sale):
    payment_service.record_payment(credit_sale.id, 10000)
    payment_service.record_payment(credit_sale.id, 1)
    sale = db_session.get(Sale, credit_sale.id)
    assert sale.payment_status == "completed"
    assert sale.balance_due_cents == 0


@pytest.mark.parametrize("amount", [0, -100, "0.001"])
def test_non_positive_payment_rejected(db_session, credit_sale, amount):
    with pytest.raises(NonPositivePayment):
        payment_service.record_payment(credit_sale.id, amount)
    assert db_session.query(Payment).count() == 0


def test_refunded_sale_rejects_payment(db_session, credit_sale):
    sale = db_session.get(Sale, credit_sale.id)
    sale.payment_status = "refunded"
    db_session.commit()

    with pytest.raises(SaleRefunded):
        payment_service.record_payment(credit_sale.id, 100)
    assert db_session.query(Payment).count() == 0


def test_unknown_sale_and_method(db_session, credit_sale):
    with pytest.raises(PaymentError):
        payment_service.record_payment(999999, 100)
    with pytest.raises(InvalidPaymentMethod):
        payment_service.record_payment(credit_sale.id, 100, method="cheque")


def test_successful_only_filter(db_session, credit_sale):
    payment_service.record_payment(credit_sale.id, 100)
    db_session.add(Payment(sale_id=credit_sale.id, amount_cents=500, payment_method="card", status="failed"))
    db_session.commit()

    assert len(payment_service.get_sale_payments(credit_sale.id)) == 2
    assert len(payment_service.get_sale_payments(credit_sale.id, successful_only=True)) == 1
    assert payment_service.sum_successful_payments_cents(credit_sale.id) == 10000
    assert payment_service.verify_sale_consistency(credit_sale.id) == []


def test_verify_detects_drift(db_session, credit_sale):
    sale = db_session.get(Sale, credit_sale.id)
    sale.amount_paid_cents = 100
    db_session.commit()

    problems = payment_service.verify_sale_consistency(sale.id)
    assert any("amount_paid" in p for p in problems)


def test_payment_rereads_sale_changed_by_another_writer(tmp_path, monkeypatch):
    """A payment committed elsewhere between read and write is not lost."""
    uri = f"sqlite:///{tmp_path / 'ledger.sqlite3'}"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': uri,
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DB_RETRY_ATTEMPTS': 3,
    })

    with app.app_context():
        db.create_all()
        other = create_engine(uri)
        try:
            business = business_service.create_business_unit(name="Glow Salon")
            sale = sales_service.checkout(
                business.id, [{"quantity": 2, "unit_price": 5000}], amount_tendered=0,
            )
            sale_id = sale.id

            apply_payment = settlement_service.apply_payment
            calls = []

            def apply_after_competing_payment(settlement, amount):
                calls.append(amount)
                if len(calls) == 1:
                    with other.begin() as conn:
                        conn.execute(
                            text(
                                "INSERT INTO payments (sale_id, amount_cents, payment_method, status) "
                                "VALUES (:id, 200000, 'card', 'successful')"
                            ),
                            {"id": sale_id},
                        )
                        conn.execute(
                            text(
                                "UPDATE sales SET amount_paid_cents = amount_paid_cents + 200000, "
                                "balance_due_cents = balance_due_cents - 200000, "
                                "payment_status = 'partial', version_id = version_id + 1 "
                                "WHERE id = :id"
                            ),
                            {"id": sale_id},
                        )
                return apply_payment(settlement, amount)

            monkeypatch.setattr(settlement_service, "apply_payment", apply_after_competing_payment)

            payment_service.record_payment(sale_id, 3000)

            assert len(calls) == 2
            stored = db.session.get(Sale, sale_id)
            db.session.refresh(stored)
            assert stored.amount_paid_cents == 500000
            assert stored.balance_due_cents == 500000
            assert stored.payment_status == "partial"
            assert db.session.query(Payment).filter_by(sale_id=sale_id).count() == 2
            assert payment_service.verify_sale_consistency(sale_id) == []
        finally:
            other.dispose()
            db.session.remove()
            db.drop_all()
