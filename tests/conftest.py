import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MEDIA_ROOT"] = tempfile.mkdtemp(prefix="coursehub-media-")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coursehub.collaborators import PaymentResult
from coursehub.config import get_settings
from coursehub.database import Base, get_db
from coursehub.dependencies import get_file_store, get_notifier, get_payments
from coursehub.exceptions import BadRequest, UpstreamFailure
from coursehub.identity import Principal
from coursehub.main import app
from coursehub.models import CONTENT_CLASSES, ContentType, Course, Role, User
from coursehub.services.catalog import Catalog


class FakePayments:
    def __init__(self):
        self.results = {}
        self.checkouts = []
        self.down = False

    def add(self, reference, course_id, student_id, status="paid", transaction_id=None):
        self.results[reference] = PaymentResult(
            status=status,
            transaction_id=transaction_id or f"pi_{reference}",
            course_id=course_id,
            student_id=student_id,
        )

    def retrieve(self, reference):
        if self.down:
            raise UpstreamFailure("Payment provider is unavailable")
        if reference not in self.results:
            raise BadRequest("Unknown transaction reference")
        return self.results[reference]

    def create_checkout(self, course, student):
        self.checkouts.append((course.id, student.id))
        return f"https://checkout.test/session/{course.id}"


class FakeFileStore:
    def __init__(self):
        self.files = {}
        self.down = False

    def put(self, filename, data):
        if self.down:
            raise UpstreamFailure("File storage is unavailable")
        url = f"/media/{len(self.files) + 1}_{filename}"
        self.files[url] = data
        return url


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.down = False

    async def send(self, to, template, context):
        if self.down:
            raise RuntimeError("SMTP unreachable")
        self.sent.append((to, template, context))


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def catalog(db):
    return Catalog(db)


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture
def file_store():
    return FakeFileStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=Role.STUDENT, name=None):
        counter["n"] += 1
        user = User(
            name=name or f"{role.value} {counter['n']}",
            email=f"{role.value.lower()}{counter['n']}@example.com",
            password_hash="x",
            role=role.value,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def instructor(make_user):
    return make_user(Role.INSTRUCTOR, name="Ada Instructor")


@pytest.fixture
def student(make_user):
    return make_user(Role.STUDENT, name="Sam Student")


@pytest.fixture
def make_course(db, instructor):
    def _make(price=0.0, title="Intro to Python", owner=None):
        course = Course(
            title=title,
            description="Basics",
            category="Programming",
            level="Beginner",
            price=price,
            instructor_id=(owner or instructor).id,
        )
        db.add(course)
        db.commit()
        db.refresh(course)
        return course
    return _make


@pytest.fixture
def make_content(db, instructor):
    def _make(course, content_type=ContentType.VIDEO, title=None, **payload):
        model = CONTENT_CLASSES[content_type]
        content = model(
            course_id=course.id,
            title=title or f"{content_type.value} item",
            created_by=instructor.id,
            **payload,
        )
        db.add(content)
        db.commit()
        db.refresh(content)
        return content
    return _make


@pytest.fixture
def as_principal():
    def _principal(user):
        return Principal(user_id=user.id, role=Role(user.role))
    return _principal


@pytest.fixture
def client(db, payments, file_store, notifier):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payments] = lambda: payments
    app.dependency_overrides[get_file_store] = lambda: file_store
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    def _headers(user):
        return {"X-User-Id": str(user.id)}
    return _headers
