import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from typing import Optional, Protocol

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials, exceptions as firebase_exceptions
from jose import ExpiredSignatureError, JWTError, jwt

from tasktracker import config
from tasktracker.errors import ConfigurationError

logger = logging.getLogger(__name__)


class TokenVerificationError(Exception):
    """The bearer token could not be verified."""


@dataclass(frozen=True)
class Principal:
    uid: str
    email: Optional[str] = None


class TokenVerifier(Protocol):
    def verify(self, token: str) -> Principal: ...


class JWTTokenVerifier:
    """Verifies HS256 tokens signed with a shared secret (local dev and tests)."""

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def create_token(self, subject: str, email: Optional[str] = None, expires_minutes: Optional[float] = None) -> str:
        if expires_minutes is None:
            # read expiry at call-time so runtime overrides of config take effect
            expires_minutes = config.ACCESS_TOKEN_EXPIRE_MINUTES
        expire = datetime.now(UTC) + timedelta(minutes=expires_minutes)
        data = {"sub": subject, "exp": int(expire.timestamp())}  # JWT spec uses Unix timestamp
        if email:
            data["email"] = email
        return jwt.encode(data, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> Principal:
        try:
            # jwt.decode validates exp automatically
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenVerificationError("Token has expired") from exc
        except JWTError as exc:
            raise TokenVerificationError("Invalid token") from exc
        subject = payload.get("sub")
        if not subject:
            raise TokenVerificationError("Invalid token: missing subject")
        return Principal(uid=subject, email=payload.get("email"))


class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens through the firebase-admin SDK."""

    def __init__(self, app: firebase_admin.App):
        self.app = app

    @classmethod
    def initialize(cls, project_id: str, credentials_path: str = "") -> "FirebaseTokenVerifier":
        """Initialise the SDK once per process; any failure is fatal for startup."""
        if not project_id:
            raise ConfigurationError("FIREBASE_PROJECT_ID is required when AUTH_BACKEND=firebase")
        try:
            return cls(firebase_admin.get_app())
        except ValueError:
            pass  # no default app yet
        try:
            cred = credentials.Certificate(credentials_path) if credentials_path else None
            app = firebase_admin.initialize_app(cred, {"projectId": project_id})
        except (ValueError, OSError) as exc:
            raise ConfigurationError(f"Firebase Admin initialisation failed: {exc}") from exc
        logger.info("Firebase Admin initialised for project %s", project_id)
        return cls(app)

    def verify(self, token: str) -> Principal:
        try:
            decoded = firebase_auth.verify_id_token(token, app=self.app)
        except (ValueError, firebase_exceptions.FirebaseError) as exc:
            raise TokenVerificationError(str(exc)) from exc
        return Principal(uid=decoded["uid"], email=decoded.get("email"))


def build_verifier(backend: Optional[str] = None) -> TokenVerifier:
    backend = backend or config.AUTH_BACKEND
    if backend == "firebase":
        return FirebaseTokenVerifier.initialize(config.FIREBASE_PROJECT_ID, config.FIREBASE_CREDENTIALS)
    if backend == "jwt":
        return JWTTokenVerifier(config.SECRET_KEY, config.ALGORITHM)
    raise ConfigurationError(f"Unknown AUTH_BACKEND {backend!r}; expected 'firebase' or 'jwt'")
