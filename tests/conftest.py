"""
Pytest configuration and fixtures for quizdrill tests.
"""
import sys
import os
import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.base import Base
from models.user import User
import models.quiz  # noqa: F401
import models.session  # noqa: F401
from services.quiz_service import QuizService


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with maker() as session:
        yield session


@pytest_asyncio.fixture
async def owner(db):
    user = User(email="learner@example.com", display_name="Learner")
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def other_user(db):
    user = User(email="other@example.com", display_name="Other")
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def make_questions(count, multiple_every=0):
    """Build ``count`` questions; every ``multiple_every``-th one is multi-select."""
    questions = []
    for i in range(count):
        multiple = bool(multiple_every) and (i + 1) % multiple_every == 0
        questions.append({
            "question": f"Question {i + 1}?",
            "category": "odd" if i % 2 else "even",
            "is_multiple_choice": multiple,
            "options": [
                {"text": "right", "is_answer": True, "explanation": "because"},
                {"text": "also right" if multiple else "wrong", "is_answer": multiple},
                {"text": "wrong again", "is_answer": False},
            ],
        })
    return questions


@pytest.fixture
def quiz_factory(db, owner):
    """Create a quiz with N questions owned by ``owner``."""
    async def factory(count, name="Sample Quiz", multiple_every=0):
        return await QuizService(db).save_quiz(owner.id, name, make_questions(count, multiple_every))
    return factory
