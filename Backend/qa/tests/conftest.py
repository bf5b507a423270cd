"""Shared fixtures: users, authenticated API clients and question builders."""
import itertools

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from qa import services
from qa.models import Answer, Question, User
from qa.utils import create_session

PASSWORD = "S3cure-pass-123"


@pytest.fixture(autouse=True)
def fast_password_hashing(settings):
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
        "django.contrib.auth.hashers.BCryptPasswordHasher",
    ]


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(username=None, role=User.ROLE_USER, password=PASSWORD):
        username = username or f"user{next(counter)}"
        return User.objects.create_user(
            email=f"{username}@example.com", username=username, password=password, role=role,
        )

    return _make


@pytest.fixture
def author(make_user):
    return make_user("asker")


@pytest.fixture
def other_user(make_user):
    return make_user("helper")


@pytest.fixture
def make_question(author):
    """Create a question; `age` shifts created_at into the past."""

    def _make(title="How do I join two tables?", tags=None, by=None, age=None, description="Details"):
        question = services.create_question(by or author, title, description, tags or [])
        if age is not None:
            Question.objects.filter(pk=question.pk).update(created_at=timezone.now() - age)
            question.refresh_from_db()
        return question

    return _make


@pytest.fixture
def make_answer(other_user):
    def _make(question, by=None, content="Use a JOIN.", age=None):
        answer = Answer.objects.create(question=question, author=by or other_user, content=content)
        if age is not None:
            Answer.objects.filter(pk=answer.pk).update(created_at=timezone.now() - age)
            answer.refresh_from_db()
        return answer

    return _make


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for():
    """APIClient authenticated with a fresh bearer token for `user`."""

    def _client(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {create_session(user).token}")
        return client

    return _client
