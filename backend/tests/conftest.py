import os
import tempfile

# CRITICAL: Set environment variables BEFORE any decisionlog imports
# These must be set before decisionlog.config.settings is loaded
_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "test_decisionlog.db")
_TEST_STORAGE_DIR = tempfile.mkdtemp(prefix="decisionlog-storage-")
os.environ["SECRET_KEY"] = "test-secret-key-1234567890"
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{_TEST_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"
os.environ["API_V1_STR"] = "/api"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_DIR"] = _TEST_STORAGE_DIR
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["DOCRAPTOR_API_KEY"] = ""

from datetime import datetime, timedelta, timezone  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from decisionlog import models  # noqa: E402
from decisionlog.core.security import create_access_token_for_subject  # noqa: E402
from decisionlog.database import Base, get_db  # noqa: E402
from decisionlog.database import engine as app_engine  # noqa: E402
from decisionlog.main import app  # noqa: E402

TEST_ENGINE = app_engine

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=TEST_ENGINE, future=True)


def override_get_db():
    """Test database session that uses the test engine."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function", autouse=True)
def setup_test_database():
    """Fresh schema per test; restores dependency overrides afterwards."""
    original_overrides = dict(app.dependency_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)
    Base.metadata.create_all(bind=TEST_ENGINE)

    yield

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def sqlite_foreign_keys():
    """Enforce foreign keys on SQLite connections, as Postgres always does."""

    def _enable(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    event.listen(TEST_ENGINE, "connect", _enable)
    TEST_ENGINE.dispose()
    yield
    event.remove(TEST_ENGINE, "connect", _enable)
    TEST_ENGINE.dispose()


@pytest.fixture
def client():
    return TestClient(app)


def _bearer(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token_for_subject(user_id)}"}


@pytest.fixture
def auth_headers():
    return _bearer


@pytest.fixture
def seeded(db_session):
    """A workspace with one member, one outsider and a project with three decisions.

    d1 carries two options, one comment, one approval and three attachments; d2 has
    no related rows; d3 is soft-deleted.
    """

    base = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    owner = models.User(email="alice@studio.test", full_name="Alice Architect")
    reviewer = models.User(email="rob@client.test", full_name="Rob Client")
    outsider = models.User(email="eve@elsewhere.test", full_name="Eve Outsider")
    workspace = models.Workspace(name="Studio")
    db_session.add_all([owner, reviewer, outsider, workspace])
    db_session.flush()

    db_session.add(
        models.WorkspaceMember(workspace_id=workspace.id, user_id=owner.id, role="owner")
    )
    project = models.Project(workspace_id=workspace.id, name="Riverside House")
    db_session.add(project)
    db_session.flush()

    d1 = models.Decision(
        project_id=project.id,
        title="Kitchen worktop",
        description="Pick the worktop material",
        status="approved",
        created_at=base,
        updated_at=base + timedelta(hours=1),
    )
    d2 = models.Decision(
        project_id=project.id,
        title="Front door colour",
        status="draft",
        created_at=base + timedelta(days=1),
        updated_at=base + timedelta(days=1),
    )
    d3 = models.Decision(
        project_id=project.id,
        title="Removed decision",
        status="draft",
        created_at=base + timedelta(days=2),
        updated_at=base + timedelta(days=2),
        deleted_at=base + timedelta(days=3),
    )
    db_session.add_all([d1, d2, d3])
    db_session.flush()

    db_session.add_all(
        [
            models.DecisionOption(
                decision_id=d1.id, title="Oak", description="Warm finish", position=1
            ),
            models.DecisionOption(
                decision_id=d1.id,
                title="Quartz",
                description="Hard wearing",
                position=2,
                is_recommended=True,
            ),
            models.DecisionComment(
                decision_id=d1.id,
                user_id=reviewer.id,
                text="Quartz please",
                created_at=base + timedelta(hours=2),
            ),
            models.DecisionApproval(
                decision_id=d1.id,
                user_id=reviewer.id,
                status="approved",
                timestamp=base + timedelta(hours=3),
            ),
            models.DecisionAttachment(
                decision_id=d1.id, filename="a-sample.jpg", url="https://files.test/a.jpg"
            ),
            models.DecisionAttachment(
                decision_id=d1.id, filename="b-plan.pdf", url="https://files.test/b.pdf"
            ),
            models.DecisionAttachment(
                decision_id=d1.id, filename="c-quote.pdf", url="https://files.test/c.pdf"
            ),
            models.DecisionOption(decision_id=d3.id, title="Hidden", position=1),
        ]
    )
    db_session.commit()

    return SimpleNamespace(
        owner_id=owner.id,
        reviewer_id=reviewer.id,
        outsider_id=outsider.id,
        workspace_id=workspace.id,
        project_id=project.id,
        d1_id=d1.id,
        d2_id=d2.id,
        d3_id=d3.id,
    )
