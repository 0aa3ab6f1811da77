import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("REDIS_URL", None)
os.environ.pop("OPENAI_API_KEY", None)

from datetime import timedelta

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from visaboard.main import app
from visaboard.database import Base, get_db
from visaboard.auth.security import token_for_user
from visaboard.billing.timeutils import now_utc
from visaboard.models import User, Membership, UserMembership, Question
from visaboard.models.user import ROLE_USER, ROLE_ADMIN
from visaboard.models.membership import STATUS_ACTIVE
from visaboard.models.question import QUESTION_PENDING
from visaboard.services.suggestion_service import SuggestionService, get_suggestion_service

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """Test client whose requests share the test session."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# Model factories

@pytest.fixture
def create_user(db_session):
    counter = {"n": 0}

    def _create_user(**kwargs):
        counter["n"] += 1
        user_data = {
            "email": f"user{counter['n']}@example.com",
            "name": f"User {counter['n']}",
            "hashed_password": "not-a-real-hash",
            "role": ROLE_USER,
            "is_active": True,
        }
        user_data.update(kwargs)
        user = User(**user_data)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _create_user


@pytest.fixture
def admin(create_user):
    return create_user(email="admin@example.com", role=ROLE_ADMIN)


@pytest.fixture
def create_plan(db_session):
    def _create_plan(name="Premium Plan", duration=365, price=50.0, **kwargs):
        kwargs.setdefault("features", [])
        plan = Membership(name=name, duration=duration, price=price, **kwargs)
        db_session.add(plan)
        db_session.commit()
        db_session.refresh(plan)
        return plan
    return _create_plan


@pytest.fixture
def create_user_membership(db_session):
    def _create(user, plan, start=None, end=None, status=STATUS_ACTIVE):
        start = start or now_utc() - timedelta(days=1)
        end = end or start + timedelta(days=plan.duration)
        user_membership = UserMembership(
            user_id=user.id,
            membership_id=plan.id,
            start_date=start,
            end_date=end,
            status=status,
        )
        db_session.add(user_membership)
        db_session.commit()
        db_session.refresh(user_membership)
        return user_membership
    return _create


@pytest.fixture
def create_question(db_session):
    def _create(user, title="How long is F-1 OPT?", content="Asking for a friend.", status=QUESTION_PENDING):
        question = Question(title=title, content=content, user_id=user.id, status=status)
        db_session.add(question)
        db_session.commit()
        db_session.refresh(question)
        return question
    return _create


# Authentication helpers

@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {token_for_user(user)}"}
    return _headers


# AI provider doubles

def _completion_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={"choices": [{"message": {"content": "1. What is an I-20?\n2. Can I travel during OPT?\n\n3. How do I pay SEVIS?"}}]},
    )


def _failing_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, json={"error": "overloaded"})


def _service(handler):
    return SuggestionService(
        api_key="test-key",
        base_url="https://ai.example.com/v1",
        model="gpt-3.5-turbo",
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def ai_provider():
    service = _service(_completion_handler)
    app.dependency_overrides[get_suggestion_service] = lambda: service
    return service


@pytest.fixture
def failing_ai_provider():
    service = _service(_failing_handler)
    app.dependency_overrides[get_suggestion_service] = lambda: service
    return service
