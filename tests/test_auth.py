import pytest
from fastapi.testclient import TestClient
from firebase_admin import auth as firebase_auth

from tasktracker import config
from tasktracker.errors import ConfigurationError
from tasktracker.main import create_app
from tasktracker.models.task import Task
from tasktracker.utils import auth as auth_utils
from tasktracker.utils.auth import (
    FirebaseTokenVerifier,
    JWTTokenVerifier,
    Principal,
    TokenVerificationError,
    build_verifier,
)


class RecordingVerifier:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def verify(self, token):
        self.calls.append(token)
        if self.error:
            raise self.error
        return Principal(uid="recorded")


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Basic dXNlcjpwdw=="},
        {"Authorization": "Bearer "},
        {"Authorization": "Bearer"},
        {"Authorization": "Token abc"},
    ],
)
def test_missing_or_malformed_header_is_401_without_verifying(database, headers):
    verifier = RecordingVerifier()
    with TestClient(create_app(database=database, verifier=verifier)) as client:
        r = client.get("/api/tasks", headers=headers)
    assert r.status_code == 401
    assert r.json() == {"message": "Unauthorized: Missing or invalid token."}
    assert r.headers["WWW-Authenticate"] == "Bearer"
    assert verifier.calls == []


def test_verifier_failure_is_401(database):
    verifier = RecordingVerifier(error=TokenVerificationError("nope"))
    with TestClient(create_app(database=database, verifier=verifier)) as client:
        r = client.get("/api/tasks", headers={"Authorization": "Bearer abc"})
    assert r.status_code == 401
    assert r.json() == {"message": "Unauthorized: Invalid token."}
    assert verifier.calls == ["abc"]


def test_every_endpoint_requires_token_and_writes_nothing(client, database):
    calls = [
        ("get", "/api/tasks", None),
        ("post", "/api/tasks", {"text": "x"}),
        ("get", "/api/tasks/1", None),
        ("patch", "/api/tasks/1", {"completed": True}),
        ("delete", "/api/tasks/1", None),
    ]
    for method, path, body in calls:
        kwargs = {"json": body} if body is not None else {}
        r = client.request(method.upper(), path, headers={"Authorization": "Bearer forged"}, **kwargs)
        assert r.status_code == 401, (method, path)

    session = database.session()
    try:
        assert session.query(Task).count() == 0
    finally:
        session.close()


def test_auth_runs_before_body_validation(client):
    r = client.post("/api/tasks", json={"text": ""})
    assert r.status_code == 401


def test_token_signed_with_other_secret_is_rejected(client):
    forged = JWTTokenVerifier("other-secret").create_token("u1")
    r = client.get("/api/tasks", headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401


def test_expired_token_is_rejected(client, verifier):
    token = verifier.create_token("u1", expires_minutes=-1)
    r = client.get("/api/tasks", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_jwt_verifier_returns_subject_and_email():
    verifier = JWTTokenVerifier("s3cret")
    principal = verifier.verify(verifier.create_token("abc", email="a@example.com"))
    assert principal == Principal(uid="abc", email="a@example.com")


def test_jwt_verifier_errors():
    verifier = JWTTokenVerifier("s3cret")
    with pytest.raises(TokenVerificationError, match="expired"):
        verifier.verify(verifier.create_token("abc", expires_minutes=-1))
    with pytest.raises(TokenVerificationError):
        verifier.verify("not-a-jwt")


def test_firebase_verifier_maps_decoded_token(monkeypatch):
    seen = {}

    def fake_verify(token, app=None):
        seen["token"] = token
        return {"uid": "fb-user", "email": "fb@example.com"}

    monkeypatch.setattr(auth_utils.firebase_auth, "verify_id_token", fake_verify)
    principal = FirebaseTokenVerifier(app=object()).verify("id-token")
    assert principal == Principal(uid="fb-user", email="fb@example.com")
    assert seen["token"] == "id-token"


@pytest.mark.parametrize("error", [ValueError("empty"), firebase_auth.InvalidIdTokenError("bad token")])
def test_firebase_verifier_wraps_sdk_errors(monkeypatch, error):
    def fake_verify(token, app=None):
        raise error

    monkeypatch.setattr(auth_utils.firebase_auth, "verify_id_token", fake_verify)
    with pytest.raises(TokenVerificationError):
        FirebaseTokenVerifier(app=object()).verify("id-token")


def test_firebase_init_requires_project_id():
    with pytest.raises(ConfigurationError, match="FIREBASE_PROJECT_ID"):
        FirebaseTokenVerifier.initialize("")


def test_firebase_init_failure_is_fatal(monkeypatch, tmp_path):
    def no_app(*args, **kwargs):
        raise ValueError("no app")

    monkeypatch.setattr(auth_utils.firebase_admin, "get_app", no_app)
    with pytest.raises(ConfigurationError, match="initialisation failed"):
        FirebaseTokenVerifier.initialize("demo-project", str(tmp_path / "missing.json"))


def test_firebase_init_creates_app_once(monkeypatch):
    created = []
    sentinel = object()

    def no_app(*args, **kwargs):
        raise ValueError("no app")

    def fake_initialize(cred, options):
        created.append((cred, options))
        return sentinel

    monkeypatch.setattr(auth_utils.firebase_admin, "get_app", no_app)
    monkeypatch.setattr(auth_utils.firebase_admin, "initialize_app", fake_initialize)
    verifier = FirebaseTokenVerifier.initialize("demo-project")
    assert verifier.app is sentinel
    assert created == [(None, {"projectId": "demo-project"})]


def test_build_verifier_selects_backend(monkeypatch):
    monkeypatch.setattr(config, "SECRET_KEY", "configured")
    verifier = build_verifier("jwt")
    assert isinstance(verifier, JWTTokenVerifier)
    assert verifier.secret_key == "configured"

    with pytest.raises(ConfigurationError):
        build_verifier("ldap")


def test_startup_fails_when_identity_provider_misconfigured(monkeypatch, database):
    monkeypatch.setattr(config, "AUTH_BACKEND", "firebase")
    monkeypatch.setattr(config, "FIREBASE_PROJECT_ID", "")
    app = create_app(database=database)
    with pytest.raises(ConfigurationError):
        with TestClient(app):
            pass
