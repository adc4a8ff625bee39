import pytest
from sourcing import create_app
from sourcing.extensions import db as _db
from sourcing.models.product import Product
from sourcing.services import storage_service


@pytest.fixture
def app():
    """Create application for testing, with a fresh in-memory database."""
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def admin_headers(app):
    return {
        "X-Admin-Token": app.config["ADMIN_API_TOKEN"],
        "X-Operator-Id": "ops@example.test",
    }


@pytest.fixture
def uploads(monkeypatch):
    """Replace S3 uploads with an in-memory record of (key, data, content_type)."""
    calls = []

    def fake_upload(storage_key, data, content_type="image/jpeg"):
        calls.append((storage_key, data, content_type))

    monkeypatch.setattr(storage_service, "upload", fake_upload)
    return calls


@pytest.fixture
def make_product(db):
    def _make(title="Test Widget", category="electronics", images=None, **kwargs):
        kwargs.setdefault("published", True)
        p = Product(title=title, category=category, images=images or [], **kwargs)
        db.session.add(p)
        db.session.commit()
        return p

    return _make

