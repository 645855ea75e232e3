"""
Pytest fixtures for salon backend tests.

Provides test database setup, a store with weekly hours, employee/ticket
factories and the test client. Every time-dependent service takes `now=`,
so tests pin the clock explicitly.
"""

from datetime import datetime

import pytest
from salonpos import create_app
from salonpos.extensions import db
from salonpos.models import Employee, EmployeeStore, Service, Store
from salonpos.roles import PermissionTier, Role
from salonpos.services import ticket_service


# Wednesday 2025-10-22, 09:00 EDT
WED_0900_EDT = datetime(2025, 10, 22, 13, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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
def store(db_session):
    """Store on Eastern time: opens 09:00 daily, closes 17:30 Mon-Wed, 21:00 Thu-Fri, 17:00 weekends."""
    store = Store(
        name="Ongles Test",
        code="T1",
        timezone="America/New_York",
        opening_hours={day: "09:00" for day in (
            "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
        )},
        closing_hours={
            "monday": "17:30", "tuesday": "17:30", "wednesday": "17:30",
            "thursday": "21:00", "friday": "21:00",
            "saturday": "17:00", "sunday": "17:00",
        },
    )
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def service(db_session, store):
    """45-minute service at the store."""
    service = Service(store_id=store.id, name="Gel Manicure", duration_min=45, price_cents=3500)
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture(scope='function')
def make_employee(db_session, store):
    """Factory: employee assigned to the store."""
    def _make(
        name: str,
        roles,
        *,
        tier: str = PermissionTier.TECHNICIAN,
        pay_type: str = "hourly",
        stores=None,
    ) -> Employee:
        employee = Employee(
            legal_name=f"{name} Test",
            display_name=name,
            roles=list(roles),
            permission_tier=tier,
            pay_type=pay_type,
        )
        db_session.add(employee)
        db_session.flush()
        for s in stores or [store]:
            db_session.add(EmployeeStore(employee_id=employee.id, store_id=s.id))
        db_session.commit()
        return employee

    return _make


@pytest.fixture(scope='function')
def make_ticket(db_session, store):
    """Factory: open ticket with one service line per performer."""
    def _make(performers, *, opened_at: datetime = WED_0900_EDT, service=None, opened_by=None):
        ticket = ticket_service.open_ticket(
            store_id=store.id,
            opened_by_id=opened_by.id if opened_by else None,
            now=opened_at,
        )
        for performer in performers:
            ticket_service.add_ticket_item(
                ticket_id=ticket.id,
                employee_id=performer.id,
                service_id=service.id if service else None,
                now=opened_at,
            )
        return ticket

    return _make


@pytest.fixture(scope='function')
def technician(make_employee):
    return make_employee("Tina", [Role.TECHNICIAN])


@pytest.fixture(scope='function')
def receptionist(make_employee):
    return make_employee("Rita", [Role.RECEPTIONIST], tier=PermissionTier.RECEPTIONIST)


@pytest.fixture(scope='function')
def supervisor(make_employee):
    return make_employee("Sam", [Role.SUPERVISOR, Role.TECHNICIAN], tier=PermissionTier.RECEPTIONIST)


@pytest.fixture(scope='function')
def manager(make_employee):
    return make_employee("Mona", [Role.MANAGER], tier=PermissionTier.ADMIN)


def employee_headers(employee) -> dict:
    """Helper to create the acting-employee header."""
    return {'X-Employee-Id': str(employee.id)}
