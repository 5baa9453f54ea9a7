import os
import tempfile

os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="slicecraft-uploads-"))
os.environ.setdefault("PAYMENT_MODE", "test")

import mongomock
import pytest
from fastapi.testclient import TestClient

import auth
import config
import database
import notifications
from database import create_document, get_document_by_id
from schemas import Inventory, Pizza, User

PASSWORD = "secret123"
_password_hash = None


def _hash():
    global _password_hash
    if _password_hash is None:
        _password_hash = auth.get_password_hash(PASSWORD)
    return _password_hash


@pytest.fixture(autouse=True)
def settings(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path))
    monkeypatch.setattr(config, "PAYMENT_MODE", "test")
    monkeypatch.setattr(config, "ADMIN_EMAIL", "alerts@example.com")
    monkeypatch.setattr(config, "SMTP_HOST", None)


@pytest.fixture
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["slicecraft_test"]
    monkeypatch.setattr(database, "db", mock_db)
    return mock_db


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    def fake_send(to, subject, html):
        sent.append({"to": to, "subject": subject, "html": html})

    monkeypatch.setattr(notifications, "send_email", fake_send)
    return sent


@pytest.fixture
def client(db):
    import main
    return TestClient(main.app)


def make_account(name, email, role="user"):
    user_id = create_document("user", User(name=name, email=email, password_hash=_hash(), role=role, is_verified=True))
    user = get_document_by_id("user", user_id)
    return {"user": user, "headers": {"Authorization": f"Bearer {auth.token_for(user)}"}}


@pytest.fixture
def customer(db):
    return make_account("Alice", "alice@example.com")


@pytest.fixture
def other_customer(db):
    return make_account("Bob", "bob@example.com")


@pytest.fixture
def admin(db):
    return make_account("Admin", "admin@example.com", role="admin")


@pytest.fixture
def margherita(db):
    """A catalog pizza with all its ingredients stocked."""
    pizza_id = create_document("pizza", Pizza(
        name="Margherita",
        description="Tomato, mozzarella, basil",
        price=10.0,
        base="Thin Crust",
        sauce="Tomato",
        cheese="Mozzarella",
        veggies=["Basil", "Olives"],
        meats=["Pepperoni"],
        category="classic",
    ))
    for item_type, name in [("base", "Thin Crust"), ("sauce", "Tomato"), ("cheese", "Mozzarella"),
                            ("veggie", "Basil"), ("veggie", "Olives"), ("meat", "Pepperoni")]:
        create_document("inventory", Inventory(item_type=item_type, name=name, quantity=20, threshold=5, unit="pcs"))
    return get_document_by_id("pizza", pizza_id)


@pytest.fixture
def proof_image():
    return ("proof.png", b"\x89PNG\r\n\x1a\n" + b"\x00" * 64, "image/png")
