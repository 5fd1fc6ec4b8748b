"""
HTTP tests for the JSON blueprints.

Money crosses the wire as integer cents; rates as percent numbers.
"""

import pytest

from bizledger.models import Sale


@pytest.fixture
def tenant(client, db_session):
    """Business with one employee and one service, created over HTTP."""
    resp = client.post('/api/businesses', json={'name': 'Glow Salon'})
    assert resp.status_code == 201
    business_id = resp.json['business']['id']

    resp = client.post(f'/api/businesses/{business_id}/employees', json={
        'name': 'Ada',
        'commission_type': 'percentage',
        'commission_percentage': '12.5',
    })
    assert resp.status_code == 201
    employee = resp.json['employee']
    assert employee['commission_percentage_bps'] == 1250

    resp = client.post(f'/api/businesses/{business_id}/services', json={
        'name': 'Haircut',
        'base_price_cents': 500000,
        'tax_rate': 7.5,
        'sku': 'HC-01',
    })
    assert resp.status_code == 201
    service = resp.json['service']

    return {'business_id': business_id, 'employee_id': employee['id'], 'service_id': service['id']}


def test_health(client, db_session):
    resp = client.get('/api/system/health')
    assert resp.status_code == 200
    assert resp.json['status'] == 'healthy'
    assert resp.json['checks']['database']['status'] == 'healthy'


def test_checkout_and_follow_up_payment(client, tenant):
    resp = client.post('/api/sales', json={
        'business_id': tenant['business_id'],
        'employee_id': tenant['employee_id'],
        'items': [{'service_id': tenant['service_id'], 'quantity': 2}],
        'amount_tendered_cents': 400000,
        'payment_method': 'transfer',
    })
    assert resp.status_code == 201
    sale = resp.json['sale']
    assert sale['subtotal_cents'] == 1000000
    assert sale['tax_amount_cents'] == 75000
    assert sale['total_amount_cents'] == 1075000
    assert sale['amount_paid_cents'] == 400000
    assert sale['balance_due_cents'] == 675000
    assert sale['payment_status'] == 'partial'
    assert len(sale['items']) == 1

    resp = client.get(f"/api/sales/debtors?business_id={tenant['business_id']}")
    assert resp.status_code == 200
    assert resp.json['count'] == 1
    assert resp.json['total_outstanding_cents'] == 675000

    resp = client.post('/api/payments', json={'sale_id': sale['id'], 'amount_cents': 675000})
    assert resp.status_code == 201
    assert resp.json['summary']['payment_status'] == 'completed'
    assert resp.json['summary']['balance_due_cents'] == 0

    resp = client.get(f"/api/payments/sales/{sale['id']}")
    assert resp.status_code == 200
    assert [p['amount_cents'] for p in resp.json['payments']] == [400000, 675000]

    resp = client.get(f"/api/sales?business_id={tenant['business_id']}&status=completed")
    assert resp.status_code == 200
    assert [s['id'] for s in resp.json['sales']] == [sale['id']]


def test_commission_flow(client, tenant):
    resp = client.post('/api/sales', json={
        'business_id': tenant['business_id'],
        'employee_id': tenant['employee_id'],
        'items': [{'unit_price_cents': 1000000}],
    })
    assert resp.status_code == 201

    resp = client.post('/api/commissions', json={
        'business_id': tenant['business_id'],
        'employee_id': tenant['employee_id'],
        'total_amount_cents': 200000,
    })
    assert resp.status_code == 201
    assert resp.json['commission']['commission_amount_cents'] == 25000

    resp = client.get(f"/api/commissions?business_id={tenant['business_id']}")
    ids = [t['id'] for t in resp.json['commissions']]
    assert len(ids) == 2

    for _ in range(2):
        resp = client.post('/api/commissions/mark-paid', json={'transaction_ids': ids})
        assert resp.status_code == 200
    assert resp.json['marked'] == 0

    resp = client.get(f"/api/commissions/employees/{tenant['employee_id']}/summary")
    assert resp.status_code == 200
    assert resp.json['total_commission_cents'] == 150000
    assert resp.json['unpaid_commission_cents'] == 0


@pytest.mark.parametrize('item', [
    {'unit_price_cents': 1000, 'quantity': '1.5'},
    {'unit_price_cents': 1000, 'quantity': 0},
    {'unit_price_cents': 1000, 'discount_cents': 2000},
    {'unit_price_cents': 1000, 'tax_rate': 'abc'},
    {'quantity': 1},
])
def test_checkout_validation_errors(client, tenant, item):
    resp = client.post('/api/sales', json={'business_id': tenant['business_id'], 'items': [item]})
    assert resp.status_code == 400
    assert 'error' in resp.json


def test_checkout_empty_cart(client, tenant):
    resp = client.post('/api/sales', json={'business_id': tenant['business_id'], 'items': []})
    assert resp.status_code == 400


def test_unknown_resources(client, tenant):
    assert client.get('/api/sales/999999').status_code == 404
    assert client.get('/api/payments/sales/999999').status_code == 404
    assert client.post('/api/payments', json={'sale_id': 999999, 'amount_cents': 100}).status_code == 404
    assert client.post('/api/businesses/999999/customers', json={'name': 'X'}).status_code == 404
    assert client.get('/api/commissions/employees/999999/summary').status_code == 404

    resp = client.post('/api/commissions/mark-paid', json={'transaction_ids': [999999]})
    assert resp.status_code == 404
    assert resp.json['details']['missing_ids'] == [999999]


def test_payment_on_refunded_sale_conflicts(client, tenant, db_session):
    resp = client.post('/api/sales', json={
        'business_id': tenant['business_id'],
        'items': [{'unit_price_cents': 1000}],
        'amount_tendered_cents': 0,
    })
    sale_id = resp.json['sale']['id']
    sale = db_session.get(Sale, sale_id)
    sale.payment_status = 'refunded'
    db_session.commit()

    resp = client.post('/api/payments', json={'sale_id': sale_id, 'amount_cents': 1000})
    assert resp.status_code == 409


def test_non_positive_payment(client, tenant):
    resp = client.post('/api/sales', json={
        'business_id': tenant['business_id'],
        'items': [{'unit_price_cents': 1000}],
        'amount_tendered_cents': 0,
    })
    sale_id = resp.json['sale']['id']
    resp = client.post('/api/payments', json={'sale_id': sale_id, 'amount_cents': -5})
    assert resp.status_code == 400


def test_duplicate_sku_conflicts(client, tenant):
    resp = client.post(f"/api/businesses/{tenant['business_id']}/services", json={
        'name': 'Haircut again',
        'base_price_cents': 1,
        'sku': 'HC-01',
    })
    assert resp.status_code == 409


def test_invalid_employee_settings(client, tenant):
    resp = client.post(f"/api/businesses/{tenant['business_id']}/employees", json={
        'name': 'Bola',
        'commission_type': 'tiered',
    })
    assert resp.status_code == 400

    resp = client.post(f"/api/businesses/{tenant['business_id']}/employees", json={
        'name': 'Bola',
        'commission_percentage': 120,
    })
    assert resp.status_code == 400

    resp = client.post(f"/api/businesses/{tenant['business_id']}/employees", json={
        'name': 'Bola',
        'commission_percentage': '12.345',
    })
    assert resp.status_code == 400


@pytest.mark.parametrize('limit', ['-1', '0'])
def test_list_sales_rejects_non_positive_limit(client, tenant, limit):
    resp = client.get(f"/api/sales?business_id={tenant['business_id']}&limit={limit}")
    assert resp.status_code == 400


def test_list_sales_limit(client, tenant):
    for _ in range(2):
        resp = client.post('/api/sales', json={
            'business_id': tenant['business_id'],
            'items': [{'service_id': tenant['service_id'], 'quantity': 1}],
        })
        assert resp.status_code == 201

    resp = client.get(f"/api/sales?business_id={tenant['business_id']}&limit=1")
    assert resp.status_code == 200
    assert resp.json['count'] == 1
