import os
import uuid
from unittest.mock import patch

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_db  # noqa: E402
from app.db import Base, build_engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models.coordination import Matter, MatterLifecycleState  # noqa: E402
from app.schemas.pipeline import PipelineCreate  # noqa: E402
from app.services.authorization import register_authorizer  # noqa: E402
from app.services.pipeline import pipelines  # noqa: E402


@pytest.fixture()
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_catalog_cache():
    pipelines.invalidate()
    yield
    pipelines.invalidate()


@pytest.fixture(autouse=True)
def _reset_authorizer():
    register_authorizer(None)
    yield
    register_authorizer(None)


@pytest.fixture(autouse=True)
def published_events():
    """Capture events instead of queueing them on the broker."""
    with patch("app.tasks.events.process_event.delay") as mock_delay:
        yield mock_delay


@pytest.fixture()
def actor_id():
    return uuid.uuid4()


@pytest.fixture()
def actor_headers(actor_id):
    return {"X-Actor-Id": str(actor_id)}


@pytest.fixture()
def pipeline(db_session):
    """Intake / Review / Filing, with two templates on Intake and one on Review."""
    stages = pipelines.register(
        db_session,
        PipelineCreate(
            stages=[
                {
                    "name": "Intake",
                    "position": 0,
                    "templates": [
                        {"title": "Collect client documents", "default_priority": "high"},
                        {
                            "title": "Send engagement letter",
                            "is_client_visible_by_default": True,
                            "required_by_default": True,
                        },
                    ],
                },
                {
                    "name": "Review",
                    "position": 1,
                    "templates": [{"title": "Partner review"}],
                },
                {"name": "Filing", "position": 2},
            ]
        ),
    )
    return {stage.name: stage for stage in stages}


@pytest.fixture()
def pipeline_id(pipeline):
    return pipeline["Intake"].pipeline_id


@pytest.fixture()
def make_matter(db_session, pipeline_id):
    """Insert a matter the way intake hands it over: no stage, no history."""

    def _make(**overrides):
        values = {
            "firm_id": uuid.uuid4(),
            "title": f"Matter {uuid.uuid4().hex[:6]}",
            "pipeline_id": pipeline_id,
            "lifecycle_state": MatterLifecycleState.submitted,
        }
        values.update(overrides)
        matter = Matter(**values)
        db_session.add(matter)
        db_session.commit()
        db_session.refresh(matter)
        return matter

    return _make


@pytest.fixture()
def matter(make_matter):
    return make_matter()


@pytest.fixture()
def closed_matter(make_matter):
    return make_matter(lifecycle_state=MatterLifecycleState.closed)
