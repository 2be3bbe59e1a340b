import pytest

from tests.support.fake_firestore import FakeFirestore
from uniclaim import database
from uniclaim.services import location_service


@pytest.fixture
def fake_db(monkeypatch: pytest.MonkeyPatch) -> FakeFirestore:
    db = FakeFirestore()
    monkeypatch.setattr(database, "_db", db)
    monkeypatch.setattr(database, "run_transaction", db.run_transaction)
    return db


@pytest.fixture(autouse=True)
def _reset_location_cache():
    location_service.clear_location_cache()
    yield
    location_service.clear_location_cache()


TOKENS = {
    "user-token": {"uid": "student1", "email": "student1@ustp.edu.ph"},
    "finder-token": {"uid": "finder", "email": "finder@ustp.edu.ph"},
    "admin-token": {"uid": "admin1", "email": "admin@ustp.edu.ph"},
    "outsider-token": {"uid": "outsider", "email": "outsider@ustp.edu.ph"},
}


@pytest.fixture
def client(fake_db, monkeypatch: pytest.MonkeyPatch):
    from app import app
    from uniclaim import auth

    def verify_id_token(token):
        if token not in TOKENS:
            raise ValueError("invalid token")
        return dict(TOKENS[token])

    monkeypatch.setattr(auth.firebase_auth, "verify_id_token", verify_id_token)
    fake_db.seed("users/student1", {"firstName": "Ana", "lastName": "Reyes", "role": "user"})
    fake_db.seed("users/finder", {"firstName": "Ben", "lastName": "Cruz", "role": "user"})
    fake_db.seed("users/admin1", {"firstName": "Osa", "lastName": "Admin", "role": "admin"})
    fake_db.seed("users/outsider", {"firstName": "Cara", "lastName": "Lim", "role": "user"})

    app.config["TESTING"] = True
    with app.test_client() as test_client:
        yield test_client
