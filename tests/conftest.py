"""Pytest configuration and fixtures."""
import os

# Settings are read once at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["PUBLISH_EVENTS"] = "false"
os.environ["BACKGROUND_PROCESSING"] = "false"
os.environ["ANTHROPIC_API_KEY"] = ""

from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ingestion.api.deps import get_llm_client, get_object_store  # noqa: E402
from ingestion.config import get_settings  # noqa: E402
from ingestion.database import Base, get_db  # noqa: E402
from ingestion.main import app  # noqa: E402
from ingestion.services.field_catalog import STANDARD_FIELDS  # noqa: E402
from ingestion.services.field_dictionary import FieldDictionary, StandardField, seed_standard_fields  # noqa: E402
from ingestion.services.pipeline import IngestionPipeline  # noqa: E402
from ingestion.services.storage import LocalObjectStore  # noqa: E402
from ingestion.services.suggester import SuggesterConfig  # noqa: E402

ORDERS_CSV = (
    "Order #,Date,Client,Qty,Order Total\n"
    "ORD-1,2024-03-01,Harbor Bistro,4,120.50\n"
    "ORD-2,03/02/2024,Blue Plate Diner,2,-5\n"
    'ORD-3,2024-03-03,Corner Deli,1,"$1,000.00"\n'
).encode("utf-8")

ORDER_MAPPINGS = [
    {"source_column": "Order #", "target_field": "order_id"},
    {"source_column": "Date", "target_field": "order_date", "transformation": "date"},
    {"source_column": "Client", "target_field": "customer_name"},
    {"source_column": "Qty", "target_field": "quantity"},
    {"source_column": "Order Total", "target_field": "total_amount", "transformation": "number"},
]


class FakeMessages:
    """Stands in for ``client.messages``; replies are consumed in order."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=reply)])


def fake_anthropic(*replies):
    return SimpleNamespace(messages=FakeMessages(replies))


@pytest.fixture
def test_db():
    """Create a test database for testing."""
    # One shared in-memory SQLite connection for every session
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = TestingSessionLocal()
    seed_standard_fields(db)
    db.close()

    yield TestingSessionLocal

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(test_db):
    session = test_db()
    yield session
    session.close()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def store(tmp_path):
    return LocalObjectStore(str(tmp_path / "blobs"))


@pytest.fixture
def pipeline(db, settings, store):
    return IngestionPipeline(db, settings, store)


@pytest.fixture
def dictionary():
    """Field dictionary built straight from the catalog, no database needed."""
    return FieldDictionary(
        StandardField(
            domain=domain,
            field_name=definition["field_name"],
            display_name=definition["display_name"],
            data_type=definition["data_type"],
            is_required=definition["is_required"],
            aliases=tuple(a.lower() for a in definition["common_aliases"]),
            allowed_values=tuple(definition["allowed_values"]) if definition["allowed_values"] else None,
            validation_regex=definition["validation_regex"],
            min_value=definition["min_value"],
            max_value=definition["max_value"],
        )
        for domain, definitions in STANDARD_FIELDS.items()
        for definition in definitions
    )


@pytest.fixture
def suggester_config(settings):
    return SuggesterConfig.from_settings(settings)


@pytest.fixture
def client(test_db, store):
    """API client backed by the test database and a local object store."""

    def override_get_db():
        try:
            session = test_db()
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_store] = lambda: store
    app.dependency_overrides[get_llm_client] = lambda: None

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return {"X-Company-Id": "company-1", "X-User-Id": "user-1"}
