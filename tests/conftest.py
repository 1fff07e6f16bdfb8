import mongomock
import pytest
from flask_jwt_extended import create_access_token

from quizhub.extensions import mongo
from quizhub.main import create_app


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "MONGO_URI": "mongodb://localhost:27017/quizhub_test",
        "JWT_SECRET_KEY": "test-secret-key-long-enough-for-hs256",
        "MONGO_USE_TRANSACTIONS": False,
    })
    mongo.cx = mongomock.MongoClient()
    mongo.db = mongo.cx["quizhub_test"]
    yield app
    mongo.cx.drop_database("quizhub_test")


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return mongo.db


@pytest.fixture
def auth_headers(app):
    def make(user_id="user-1"):
        with app.app_context():
            token = create_access_token(identity=user_id)
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
def make_quiz(client, auth_headers):
    def make(name="Geo", type="trivia", user_id="user-1"):
        resp = client.post("/api/quiz/create", json={"name": name, "type": type}, headers=auth_headers(user_id))
        assert resp.status_code == 201
        return resp.get_json()
    return make
