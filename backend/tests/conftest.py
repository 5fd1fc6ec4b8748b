"""
Pytest fixtures for bizledger backend tests.

Provides test database setup, tenant fixtures, and test client.
"""

import pytest
from bizledger import create_app
from bizledger.extensions import db
from bizledger.services import business_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DB_RETRY_ATTEMPTS': 3,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def business(db_session):
    """Create Business A (first tenant)."""
    return business_service.create_business_unit(name="Glow Salon", phone="+2348000000001")


@pytest.fixture(scope='function')
def other_business(db_session):
    """Create Business B (second tenant)."""
    return business_service.create_business_unit(name="Beta Spa")


@pytest.fixture(scope='function')
def employee(business):
    """15% commission employee in Business A."""
    return business_service.create_employee(
        business.id, "Ada Stylist", commission_type="percentage", commission_percentage=15,
    )


@pytest.fixture(scope='function')
def fixed_employee(business):
    """Fixed 8000 commission employee in Business A."""
    return business_service.create_employee(
        business.id, "Tunde Barber", commission_type="fixed", fixed_commission=8000,
    )


@pytest.fixture(scope='function')
def service(business):
    """Catalog service priced 5000 with 7.5% tax."""
    return business_service.create_service(
        business.id, "Haircut", base_price=5000, tax_rate="7.5", sku="HC-01",
    )


@pytest.fixture(scope='function')
def customer(business):
    return business_service.create_customer(business.id, "Chioma", phone="08030000000")
