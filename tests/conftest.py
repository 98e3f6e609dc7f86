from pathlib import Path
import os
import sys

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-only-secret-7f3a9c1e5b2d4f6a8c0e"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from models import Question, QuizAttempt, Telemetry, User, UserRole


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name="no_number", phone_number=None, role=UserRole.USER, email=None, user_id=None):
        counter["n"] += 1
        user = User(
            id=user_id or f"user-{counter['n']}",
            name=name,
            phone_number=phone_number,
            role=role,
            email=email,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_question(db):
    def _make(org_id, number, correct="A", incorrect=("B", "C", "D"), text="Question?"):
        question = Question(
            org_id=org_id,
            number=number,
            question_text=text,
            correct_answer=correct,
            incorrect_answer_1=incorrect[0],
            incorrect_answer_2=incorrect[1],
            incorrect_answer_3=incorrect[2],
        )
        db.add(question)
        db.commit()
        return question

    return _make


@pytest.fixture
def add_attempt(db):
    def _add(user, question, answer):
        is_correct = answer == question.correct_answer
        attempt = QuizAttempt(
            user_id=user.id,
            question_id=question.id,
            answer=answer,
            is_correct=is_correct,
            score=1 if is_correct else 0,
        )
        db.add(attempt)
        db.commit()
        return attempt

    return _add


@pytest.fixture
def add_telemetry(db):
    def _add(start_number, group, points):
        row = Telemetry(start_number=start_number, group=group, points=points)
        db.add(row)
        db.commit()
        return row

    return _add


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from server import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from auth import create_access_token

    def _headers(user):
        token = create_access_token({"sub": user.id})
        return {"Authorization": f"Bearer {token}"}

    return _headers
