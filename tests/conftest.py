import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from memoir.database import Base
from memoir.models import Content, EventTag, Media, User
from memoir.network.collisions import CollisionEngine
from memoir.network.connections import ConnectionEngine
from memoir.network.detection import DetectionEngine
from memoir.network.notifications import Notifier
from memoir.network.story_merger import MergerEngine


@pytest.fixture(scope="session")
def test_db_engine(tmp_path_factory):
    """File-backed SQLite so the concurrent scans each get their own connection."""
    db_path = tmp_path_factory.mktemp("db") / "memoir_test.db"
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_db_engine):
    """Session factory over a freshly emptied database."""
    with test_db_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    return sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []

    def notify(self, user_id, event, payload):
        self.sent.append((user_id, event, payload))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def connection_engine():
    return ConnectionEngine()


@pytest.fixture
def collision_engine(connection_engine):
    return CollisionEngine(connection_engine)


@pytest.fixture
def detection_engine(collision_engine, session_factory):
    return DetectionEngine(collision_engine, session_factory=session_factory)


@pytest.fixture
def merger_engine(notifier):
    return MergerEngine(notifier)


@pytest.fixture
def make_user(db):
    def _make(user_id, name=None, email=None, **kwargs):
        user = User(id=user_id, name=name, email=email, **kwargs)
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture
def make_media(db):
    def _make(user_id, taken_at=None, latitude=None, longitude=None):
        media = Media(user_id=user_id, taken_at=taken_at, latitude=latitude, longitude=longitude)
        db.add(media)
        db.commit()
        return media
    return _make


@pytest.fixture
def make_content(db):
    def _make(user_id, timestamp, text=""):
        content = Content(user_id=user_id, timestamp=timestamp, text=text)
        db.add(content)
        db.commit()
        return content
    return _make


@pytest.fixture
def make_tag(db):
    def _make(tagger_id, tagged_user_id, status="pending"):
        tag = EventTag(tagger_id=tagger_id, tagged_user_id=tagged_user_id, status=status)
        db.add(tag)
        db.commit()
        return tag
    return _make
