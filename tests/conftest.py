import pytest

from santagroups import create_app
from santagroups.extensions import db


@pytest.fixture(params=["sql", "json"])
def app(request, tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "WTF_CSRF_ENABLED": False,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SANTA_STORAGE": request.param,
        "SANTA_DATA_FILE": str(tmp_path / "groups.json"),
        "SANTA_BASE_URL": "http://santa.test",
        "SANTA_MAIL_BACKEND": "console",
        "SANTA_MAIL_INTERVAL": 0,
    })
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    return app.extensions["santagroups.groups"]


@pytest.fixture
def repository(service):
    return service.repository


@pytest.fixture
def outbox(app):
    return app.extensions["santagroups.notifier"].sender.outbox


@pytest.fixture
def people():
    return [
        {"name": "Alice", "email": "alice@example.com"},
        {"name": "Bob", "email": "bob@example.com"},
        {"name": "Carol", "email": ""},
        {"name": "Dave", "email": "dave@example.com"},
    ]
