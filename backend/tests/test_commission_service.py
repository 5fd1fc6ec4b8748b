from decimal import Decimal

import pytest

from bizledger.models import CommissionTransaction
from bizledger.services import business_service, commission_service, sales_service
from bizledger.services.commission_service import CommissionError, calculate_commission
from bizledger.validation import (
    InvalidAmount,
    InvalidCommissionType,
    InvalidFixedCommission,
    InvalidPercentage,
)


# =============================================================================
# CALCULATION
# =============================================================================

def test_percentage_commission():
    split = calculate_commission(100000, "percentage", commission_percentage=15)
    assert split.commission_amount == Decimal("15000.00")
    assert split.house_amount == Decimal("85000.00")


def test_fixed_commission_capped_at_sale_total():
    split = calculate_commission(5000, "fixed", fixed_commission=8000)
    assert split.commission_amount == Decimal("5000.00")
    assert split.house_amount == 0


def test_fixed_commission_below_total():
    split = calculate_commission(10000, "fixed", fixed_commission=8000)
    assert split.commission_amount == Decimal("8000.00")
    assert split.house_amount == Decimal("2000.00")


@pytest.mark.parametrize("total,ctype,pct,fixed", [
    ("0", "percentage", 15, 0),
    ("0.01", "percentage", 50, 0),
    ("333.33", "percentage", "12.5", 0),
    ("99999.99", "percentage", 100, 0),
    ("10.00", "percentage", 0, 0),
    ("0", "fixed", 0, "5"),
    ("4.99", "fixed", 0, "5"),
    ("1234.56", "fixed", 0, "1234.56"),
])
def test_split_is_complete_and_non_negative(total, ctype, pct, fixed):
    split = calculate_commission(total, ctype, commission_percentage=pct, fixed_commission=fixed)
    assert split.commission_amount + split.house_amount == split.total_amount
    assert split.commission_amount >= 0
    assert split.house_amount >= 0


def test_invalid_inputs():
    with pytest.raises(InvalidCommissionType):
        calculate_commission(100, "tiered")
    with pytest.raises(InvalidPercentage):
        calculate_commission(100, "percentage", commission_percentage="100.5")
    with pytest.raises(InvalidPercentage):
        calculate_commission(100, "percentage", commission_percentage=-1)
    with pytest.raises(InvalidFixedCommission):
        calculate_commission(100, "fixed", fixed_commission=-1)
    with pytest.raises(InvalidAmount):
        calculate_commission(-1, "percentage", commission_percentage=10)


def test_percentage_ignored_for_fixed_type():
    split = calculate_commission(100, "fixed", commission_percentage=250, fixed_commission=10)
    assert split.commission_amount == Decimal("10.00")


# =============================================================================
# RECORDING AND SETTLEMENT
# =============================================================================

def test_record_commission(db_session, business, employee):
    txn = commission_service.record_commission(business.id, employee.id, 100000, notes="Bridal package")
    assert txn.id is not None
    assert txn.total_amount_cents == 10000000
    assert txn.commission_amount_cents == 1500000
    assert txn.house_amount_cents == 8500000
    assert txn.is_commission_paid is False


def test_record_commission_rejects_foreign_or_inactive_employee(db_session, business, other_business, employee):
    with pytest.raises(CommissionError):
        commission_service.record_commission(other_business.id, employee.id, 1000)

    business_service.set_employee_active(employee.id, False)
    with pytest.raises(CommissionError):
        commission_service.record_commission(business.id, employee.id, 1000)


def test_record_commission_rejects_links_outside_business(db_session, business, other_business, employee):
    foreign_service = business_service.create_service(other_business.id, "Massage", base_price=9000)
    foreign_sale = sales_service.checkout(other_business.id, [{"quantity": 1, "unit_price": 9000}])

    with pytest.raises(CommissionError):
        commission_service.record_commission(business.id, employee.id, 1000, sale_id=foreign_sale.id)
    with pytest.raises(CommissionError):
        commission_service.record_commission(business.id, employee.id, 1000, service_id=foreign_service.id)
    with pytest.raises(CommissionError):
        commission_service.record_commission(business.id, employee.id, 1000, sale_id=999999)
    assert db_session.query(CommissionTransaction).count() == 0

    own_service = business_service.create_service(business.id, "Haircut", base_price=5000)
    own_sale = sales_service.checkout(business.id, [{"quantity": 1, "unit_price": 5000}])
    txn = commission_service.record_commission(
        business.id, employee.id, 5000, service_id=own_service.id, sale_id=own_sale.id,
    )
    assert txn.service_id == own_service.id
    assert txn.sale_id == own_sale.id


def test_mark_paid_is_idempotent(db_session, business, employee):
    a = commission_service.record_commission(business.id, employee.id, 1000)
    b = commission_service.record_commission(business.id, employee.id, 2000)
    ids = [a.id, b.id]

    assert commission_service.mark_commissions_paid(ids) == 2
    first = {
        t.id: (t.is_commission_paid, t.paid_at)
        for t in db_session.query(CommissionTransaction).all()
    }

    assert commission_service.mark_commissions_paid(ids) == 0
    second = {
        t.id: (t.is_commission_paid, t.paid_at)
        for t in db_session.query(CommissionTransaction).all()
    }
    assert first == second
    assert all(paid for paid, _ in second.values())


def test_mark_paid_unknown_ids(db_session, business, employee):
    txn = commission_service.record_commission(business.id, employee.id, 1000)
    with pytest.raises(CommissionError) as exc:
        commission_service.mark_commissions_paid([txn.id, 999999])
    assert exc.value.details["missing_ids"] == [999999]

    # Nothing was marked
    db_session.refresh(txn)
    assert txn.is_commission_paid is False


def test_mark_paid_scoped_to_business(db_session, business, other_business, employee):
    txn = commission_service.record_commission(business.id, employee.id, 1000)
    with pytest.raises(CommissionError):
        commission_service.mark_commissions_paid([txn.id], business_id=other_business.id)


def test_employee_summary(db_session, business, employee):
    a = commission_service.record_commission(business.id, employee.id, 1000)
    commission_service.record_commission(business.id, employee.id, 2000)
    commission_service.mark_commissions_paid([a.id])

    summary = commission_service.employee_commission_summary(employee.id)
    assert summary["transaction_count"] == 2
    assert summary["total_sales_cents"] == 300000
    assert summary["total_commission_cents"] == 45000
    assert summary["paid_commission_cents"] == 15000
    assert summary["unpaid_commission_cents"] == 30000


def test_list_commissions_unpaid_only(db_session, business, employee, fixed_employee):
    a = commission_service.record_commission(business.id, employee.id, 1000)
    commission_service.record_commission(business.id, fixed_employee.id, 1000)
    commission_service.mark_commissions_paid([a.id])

    assert len(commission_service.list_commissions(business.id)) == 2
    unpaid = commission_service.list_commissions(business.id, unpaid_only=True)
    assert [t.employee_id for t in unpaid] == [fixed_employee.id]
