import asyncio
import os
import tempfile

os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ["ENVIRONMENT"] = "test"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="academy-uploads-")

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from academy.auth.auth_utils import create_access_token
from academy.auth.service import create_user
from academy.database import create_indexes, get_db
from academy.main import app
from academy.payment.iyzico import get_payment_provider

# 1x1 transparent PNG
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00"
    b"\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N\x00"
    b"\x00\x00\x00IEND\xaeB`\x82"
)


class FakePaymentProvider:
    """Stands in for IyzicoClient; records requests and replays canned results"""

    def __init__(self):
        self.created = []
        self.retrieved = []
        self.next_token = 0
        self.retrieve_result = {
            "status": "success",
            "paymentStatus": "SUCCESS",
            "paidPrice": "149.90",
            "conversationId": "123456",
            "paymentId": "PID-1",
        }

    async def create_checkout_form(self, request: dict) -> dict:
        self.created.append(request)
        self.next_token += 1
        return {
            "status": "success",
            "token": f"tok-{self.next_token}",
            "checkoutFormContent": "<script>checkout</script>",
            "conversationId": request["conversationId"],
        }

    async def retrieve_checkout_form(self, token: str, conversation_id=None) -> dict:
        self.retrieved.append(token)
        return dict(self.retrieve_result)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def mock_db():
    db = AsyncMongoMockClient()["academy_test"]
    run(create_indexes(db))
    return db


@pytest.fixture
def provider():
    return FakePaymentProvider()


@pytest.fixture
def client(mock_db, provider):
    async def override_db():
        return mock_db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_payment_provider] = lambda: provider
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, role="Student", email=None, name="Test User", password="secret123"):
    email = email or f"{role.lower()}-{os.urandom(4).hex()}@example.com"
    user = run(create_user(db, name, email, password, role))
    token = create_access_token(user["user_id"], role)
    return user, {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student(mock_db):
    return make_user(mock_db, "Student", name="Student One")


@pytest.fixture
def instructor(mock_db):
    return make_user(mock_db, "Instructor", name="Ada Instructor")


@pytest.fixture
def admin(mock_db):
    return make_user(mock_db, "Admin", name="Admin User")


@pytest.fixture
def category(client, admin):
    _, headers = admin
    response = client.post("/categories", json={"name": "Programming"}, headers=headers)
    assert response.status_code == 201
    return response.json()


def cover_file(name="cover.png"):
    return {"cover_image": (name, PNG_BYTES, "image/png")}


def course_fields(category_id, **overrides):
    fields = {
        "title": "Python From Scratch",
        "description": "A complete introduction to Python programming",
        "price": "149.90",
        "categories": [category_id],
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def course(client, instructor, category):
    _, headers = instructor
    response = client.post(
        "/courses", data=course_fields(category["category_id"]), files=cover_file(), headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def published_course(client, instructor, course):
    _, headers = instructor
    response = client.put(f"/courses/{course['course_id']}/toggle-publish", headers=headers)
    assert response.status_code == 200
    return response.json()["course"]
