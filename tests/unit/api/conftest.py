"""
API test fixtures.
"""

import pytest
from fastapi.testclient import TestClient

from consultlog.api.app import create_app


@pytest.fixture
def app(store, mock_llm):
    return create_app(store=store, llm=mock_llm)


@pytest.fixture
def client(app):
    """Create test client (runs lifespan for app.state)."""
    with TestClient(app) as tc:
        yield tc


@pytest.fixture
def add_consultation(client):
    """Post a consultation through the API."""

    def _add(student_name="김민수", student_id="10101", date="2024-03-04", teacher_id="t1", **kwargs):
        payload = {
            "teacher_id": teacher_id,
            "date": date,
            "time": kwargs.pop("time", "09:00"),
            "student_id": student_id,
            "student_name": student_name,
            "topic": kwargs.pop("topic", "교우 관계"),
            "content": kwargs.pop("content", "먼저 사과하고 화해함."),
        }
        response = client.post("/consultations", json=payload)
        assert response.status_code == 201
        return response.json()

    return _add
