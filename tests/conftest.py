import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault("THESISFLOW_DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from thesisflow.db import Base, get_db
from thesisflow.dependencies import get_file_store, get_renderer, get_similarity_oracle
from thesisflow.errors import TransientInfraError
from thesisflow.main import app
from thesisflow.models import DegreeLevel, Role, User
from thesisflow.schemas.assessment import CRITERIA_KEYS, Rubric
from thesisflow.services.identity import Principal, TokenIdentityProvider, create_token
from thesisflow.services.ledger import AssignmentLedger
from thesisflow.services.plagiarism import SimilarityResult
from thesisflow.services.plagiarism_gate import PlagiarismGate
from thesisflow.services.renderer import PdfReviewRenderer
from thesisflow.services.workflow import ThesisWorkflowService
from thesisflow.utils.storage import LocalFileStore

# Use in-memory SQLite for testing to ensure isolation
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeOracle:
    """Returns queued scores; a queued exception is raised instead."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def queue(self, *results):
        self.results.extend(results)

    def score(self, file_ref):
        self.calls.append(file_ref)
        result = self.results.pop(0) if self.results else 5.0
        if isinstance(result, Exception):
            raise result
        return SimilarityResult(score=result)


def full_rubric(**overrides) -> Rubric:
    data = {
        "section_one": {key: "high" for key in CRITERIA_KEYS},
        "section_two": {
            "questions": ["Why this method?", "How does it scale?"],
            "advantages": "Clear structure",
            "disadvantages": "Small sample",
            "critique": [],
            "conclusion": {
                "final_assessment": "Meets the requirements",
                "is_complete": True,
                "degree_worthy": True,
            },
        },
    }
    data.update(overrides)
    return Rubric.model_validate(data)


def transient(message="checker down"):
    return TransientInfraError(message, service="plagiarism")


@pytest.fixture(scope="function")
def session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(tmp_path):
    return LocalFileStore(tmp_path / "files")


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def service(store, oracle):
    return ThesisWorkflowService(
        store=store,
        identity=TokenIdentityProvider(),
        renderer=PdfReviewRenderer(store, compress=False),
        gate=PlagiarismGate(oracle, store, threshold=15.0),
        ledger=AssignmentLedger(store),
        max_attempts=3,
    )


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(role: Role, approved: bool = True, complete: bool = True, **fields) -> User:
        counter["n"] += 1
        user = User(
            username=fields.pop("username", f"{role.value}{counter['n']}"),
            name=fields.pop("name", f"{role.value.title()} {counter['n']}"),
            role=role,
            is_approved=approved,
        )
        if complete and role is Role.STUDENT:
            user.faculty = "Computer Science"
            user.group_name = "CS-41"
            user.subject_area = "Software Engineering"
            user.educational_program = "Applied Informatics"
            user.degree_level = DegreeLevel.BACHELORS
        elif complete:
            user.institution = "State University"
            user.positions = ["Associate Professor"]
        for key, value in fields.items():
            setattr(user, key, value)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def cast(make_user):
    """One approved principal per role."""
    return {
        "student": make_user(Role.STUDENT),
        "reviewer": make_user(Role.REVIEWER),
        "consultant": make_user(Role.CONSULTANT),
        "supervisor": make_user(Role.SUPERVISOR),
        "head": make_user(Role.HEAD_OF_DEPARTMENT),
        "admin": make_user(Role.ADMIN),
    }


@pytest.fixture
def as_(cast):
    return {name: Principal.from_user(user) for name, user in cast.items()}


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_token(user.id, user.role.value)}"}


@pytest.fixture(scope="function")
def client(session, store, oracle):
    """
    Create a TestClient that uses the override_get_db dependency.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_store] = lambda: store
    app.dependency_overrides[get_similarity_oracle] = lambda: oracle
    app.dependency_overrides[get_renderer] = lambda: PdfReviewRenderer(store, compress=False)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
