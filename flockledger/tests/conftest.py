"""Pytest configuration and fixtures for service layer tests."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker

from flockledger.models.base import Base
from flockledger.services import notification_service
from flockledger.services.access import ActorContext


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    import flockledger.models  # noqa: F401
    import flockledger.services.database as db_module

    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session


class RecordingNotifier:
    """Notifier that keeps every message it is handed."""

    def __init__(self):
        self.sent = []

    def send_to_org_managers(self, organization_id, title, message, type, link=None, details=None):
        self.sent.append(
            {
                "organization_id": organization_id,
                "title": title,
                "message": message,
                "type": type,
                "link": link,
                "details": details,
            }
        )

    def titles(self):
        return [item["title"] for item in self.sent]


@pytest.fixture(scope="function")
def notifier():
    """Install a recording notifier for the duration of a test."""
    recorder = RecordingNotifier()
    previous = notification_service.set_notifier(recorder)
    yield recorder
    notification_service.set_notifier(previous)


@pytest.fixture
def officer():
    return ActorContext(actor_id="officer-1", actor_name="Rahim")


@pytest.fixture
def other_officer():
    return ActorContext(actor_id="officer-2", actor_name="Karim")


@pytest.fixture
def admin():
    return ActorContext(actor_id="admin-1", actor_name="Admin", is_admin=True)


@pytest.fixture(scope="function")
def farmer(test_db, officer, notifier):
    """An active farmer with 100 bags of opening stock, managed by ``officer``."""
    from flockledger.services import farmer_service

    return farmer_service.create_farmer(
        officer, "Abdul Karim", "org-1", initial_stock=100, location="Savar"
    )


@pytest.fixture(scope="function")
def make_cycle(farmer, officer):
    """Factory for active cycles of ``farmer``."""
    from flockledger.services import cycle_service

    def _make(doc=100, age=0, name="Batch 1"):
        return cycle_service.create_cycle(officer, farmer["id"], name, doc, age=age)

    return _make


@pytest.fixture(scope="function")
def sale_kwargs():
    """Factory for create_sale_event keyword arguments."""

    def _kwargs(**overrides):
        values = {
            "location": "Savar Bazar",
            "birds_sold": 10,
            "total_weight": 20,
            "price_per_kg": 150,
            "feed_consumed": [{"type": "B1", "bags": 5}],
            "feed_stock": [{"type": "B1", "bags": 2}],
        }
        values.update(overrides)
        return values

    return _kwargs
