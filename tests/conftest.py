"""
Pytest configuration and shared fixtures for the booking engine tests.
"""

import os
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from flask import Flask

os.environ["TESTING"] = "True"

from main import create_app  # noqa: E402
from salon_booking.extensions import db as database  # noqa: E402
from salon_booking.models import Appointment, Base, Service, User  # noqa: E402
from salon_booking.services.scheduling.orchestrator import Actor, BookingOrchestrator  # noqa: E402
from salon_booking.services.scheduling.revenue import InMemoryRevenueSink  # noqa: E402
from salon_booking.services.scheduling.settings import SalonSettings  # noqa: E402
from salon_booking.utils.auth import issue_token  # noqa: E402

# Monday 2 November 2026, before opening time
FROZEN_NOW = datetime(2026, 11, 2, 7, 0, 0)
TOMORROW = datetime(2026, 11, 3)


def at(hour, minute=0, day=TOMORROW):
    """A datetime on ``day`` (tomorrow by default) at hour:minute."""
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


class FrozenClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, now=FROZEN_NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="session")
def app():
    """Create and configure a test app instance."""
    app = create_app()
    app.config.update(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "ENABLE_SCHEDULER": False,
        }
    )

    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if not db_uri.startswith("sqlite") and "test" not in db_uri:
        pytest.exit(f"Refusing to run tests against {db_uri}")

    yield app


@pytest.fixture
def clock(app: Flask):
    clock = FrozenClock()
    app.extensions["booking_clock"] = clock
    yield clock
    app.extensions.pop("booking_clock", None)


@pytest.fixture
def revenue_sink(app: Flask):
    sink = InMemoryRevenueSink()
    previous = app.extensions.get("revenue_sink")
    app.extensions["revenue_sink"] = sink
    yield sink
    app.extensions["revenue_sink"] = previous


@pytest.fixture
def db(app: Flask, clock, revenue_sink):
    """Fresh schema with default salon settings for every test."""
    with app.app_context():
        Base.metadata.create_all(bind=database.engine)
        SalonSettings(database.session).seed_defaults()
        database.session.commit()

        yield database

        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def client(app, db):
    return app.test_client()


@pytest.fixture
def users(db):
    """Staff are created first so auto-assignment order is stylist, stylist_b, admin."""
    people = SimpleNamespace(
        stylist=User(name="Linh Stylist", email="linh@salon.test", role="Stylist"),
        stylist_b=User(name="Mai Stylist", email="mai@salon.test", role="Stylist"),
        admin=User(name="Admin", email="admin@salon.test", role="Admin"),
        client=User(name="An Client", email="an@salon.test", role="Client"),
        other_client=User(name="Binh Client", email="binh@salon.test", role="Client"),
        walk_in=User(name="Walk-in", email="walkin@salon.test", role="Client"),
    )
    for user in vars(people).values():
        db.session.add(user)
        db.session.flush()
    db.session.commit()
    return people


@pytest.fixture
def services(db):
    catalog = SimpleNamespace(
        cut=Service(name="Haircut", price=Decimal("100000"), duration_minutes=60),
        color=Service(name="Hair color", price=Decimal("250000"), duration_minutes=90),
        wash=Service(name="Wash & blow-dry", price=Decimal("50000"), duration_minutes=30),
        retired=Service(
            name="Perm", price=Decimal("400000"), duration_minutes=120, is_active=False
        ),
    )
    for service in vars(catalog).values():
        db.session.add(service)
    db.session.commit()
    return catalog


@pytest.fixture
def settings(db):
    return SalonSettings(db.session)


@pytest.fixture
def orchestrator(db, clock, revenue_sink):
    return BookingOrchestrator(db.session, clock=clock, revenue_sink=revenue_sink)


@pytest.fixture
def actors(users):
    return SimpleNamespace(
        client=Actor(id=users.client.id, role="Client"),
        other_client=Actor(id=users.other_client.id, role="Client"),
        stylist=Actor(id=users.stylist.id, role="Stylist"),
        admin=Actor(id=users.admin.id, role="Admin"),
    )


@pytest.fixture
def make_appointment(db, users):
    """Insert an appointment row directly, bypassing booking checks.

    Defaults to the walk-in client and a created_at of yesterday so the row
    does not count against the main test client's spam limits.
    """

    def _make(staff, start, minutes=60, client=None, status="Pending",
              created_at=None, amount="100000"):
        amount = Decimal(amount)
        appointment = Appointment(
            client_id=(client or users.walk_in).id,
            staff_id=staff.id,
            start_at=start,
            end_at=start + timedelta(minutes=minutes),
            status=status,
            total_amount=amount,
            discount_amount=Decimal("0"),
            final_amount=amount,
            created_at=created_at or FROZEN_NOW - timedelta(days=1),
        )
        db.session.add(appointment)
        db.session.commit()
        return appointment

    return _make


@pytest.fixture
def auth_headers(app, users):
    """Build Authorization headers for a user."""

    def _headers(user):
        token = issue_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers
