import pytest
from unittest.mock import patch
from werkzeug.security import generate_password_hash

from songstudio import create_app
from songstudio.database import db
from songstudio.errors import ProviderPollFailed, ProviderRejected
from songstudio.models import Profile, UserRole
from songstudio.services import credits
from songstudio.suno_client import SunoTaskStatus


class FakeSuno:
    """Cliente Suno en memoria: guarda lo enviado y devuelve estados programados."""

    def __init__(self, task_id="task-1"):
        self.task_id = task_id
        self.submit_error = None
        self.poll_error = None
        self.statuses = {}
        self.sent = []
        self.polls = []

    def _submit(self, kind, params, callback_url):
        self.sent.append((kind, params, callback_url))
        if self.submit_error:
            raise self.submit_error
        return self.task_id

    def generate(self, params, callback_url):
        return self._submit("generate", params, callback_url)

    def upload_cover(self, params, callback_url):
        return self._submit("cover", params, callback_url)

    def fetch_status(self, task_id):
        self.polls.append(task_id)
        if self.poll_error:
            raise self.poll_error
        return self.statuses.get(task_id) or SunoTaskStatus(status="PENDING")

    def reject_with(self, message="Suno code 400"):
        self.submit_error = ProviderRejected(message)

    def fail_polls_with(self, message="Error consultando estado en Suno: timeout"):
        self.poll_error = ProviderPollFailed(message)


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SUNO_API_KEY": "test-key",
        "APP_BASE_URL": "http://test",
        "CREDITS_PER_SONG": 1,
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "AWS_S3_BUCKET": None,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    """Para tests de servicios (sin test client en el medio)."""
    with app.app_context():
        yield app


@pytest.fixture
def fake_suno():
    fake = FakeSuno()
    with patch("songstudio.routes.songs.SunoClient", return_value=fake):
        yield fake


@pytest.fixture
def make_profile(app):
    """Crea una cuenta aprobada y devuelve su id (el saldo inicial queda en el ledger)."""

    def _make(username="alumno", credits_=5, role=UserRole.student, approved=True, password="secret123"):
        with app.app_context():
            p = Profile(
                username=username,
                email=f"{username}@example.com",
                full_name=username.title(),
                password_hash=generate_password_hash(password),
                role=role.value,
                credits=credits_,
                approved=approved,
            )
            db.session.add(p)
            db.session.flush()
            credits.grant_initial(p, credits_, actor_id=None)
            db.session.commit()
            return p.id

    return _make


@pytest.fixture
def login(client):
    def _login(user_id):
        with client.session_transaction() as sess:
            sess["user_id"] = user_id
        return client

    return _login


@pytest.fixture
def student(make_profile):
    return make_profile("alumno", credits_=5)


@pytest.fixture
def teacher(make_profile):
    return make_profile("profe", credits_=0, role=UserRole.teacher)
