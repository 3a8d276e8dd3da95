"""
Identity resolution and the authorization gate.

Every gated route depends on `require(capability)`. The dependency resolves the
caller's Identity from the request and asks the AuthorizationGate for a
decision; rejections are a bare 403 whatever the reason.
"""
import enum
import hmac
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from pos_backend.config import Settings, service_token
from pos_backend.logging import get_logger
from pos_backend.models import User

SERVICE_TOKEN_HEADER = "x-auth-token"

logger = get_logger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


class Capability(str, enum.Enum):
    PUBLIC = "public"
    STAFF = "staff"
    ADMIN = "admin"


# Admin authority comes from one of two places: the static credential in
# configuration, or a stored user with the admin flag set.

@dataclass(frozen=True)
class ConfiguredAdmin:
    kind = "configured"


@dataclass(frozen=True)
class StoredAdmin:
    kind = "stored"


AdminAuthority = Union[ConfiguredAdmin, StoredAdmin]

_AUTHORITIES = {cls.kind: cls for cls in (ConfiguredAdmin, StoredAdmin)}


@dataclass(frozen=True)
class Anonymous:
    is_admin = False


@dataclass(frozen=True)
class Authenticated:
    username: str
    authority: Optional[AdminAuthority] = None

    @property
    def is_admin(self) -> bool:
        return self.authority is not None


@dataclass(frozen=True)
class ServiceToken:
    is_admin = True


Identity = Union[Anonymous, Authenticated, ServiceToken]


class Decision(enum.Enum):
    ALLOW = status.HTTP_200_OK
    REJECT = status.HTTP_403_FORBIDDEN


# --------------- Session tokens -------------------------------------------

def create_access_token(identity: Authenticated, settings: Settings, expires_delta: timedelta = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.session_expire_minutes))
    to_encode = {
        "sub": identity.username,
        "adm": identity.authority.kind if identity.authority else None,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.session_algorithm)


def decode_access_token(token: str, settings: Settings) -> Identity:
    """Decode a session token. Anything that does not verify is Anonymous."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.session_algorithm])
    except JWTError:
        return Anonymous()
    username = payload.get("sub")
    kind = payload.get("adm")
    if not isinstance(username, str) or not username:
        return Anonymous()
    if kind is None:
        return Authenticated(username=username)
    authority = _AUTHORITIES.get(kind)
    if authority is None:
        return Anonymous()
    return Authenticated(username=username, authority=authority())


def _session_token(request: Request, settings: Settings) -> Optional[str]:
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


def resolve_identity(request: Request, settings: Settings) -> Identity:
    expected = service_token(settings)
    presented = request.headers.get(SERVICE_TOKEN_HEADER)
    if expected and presented and hmac.compare_digest(presented.encode(), expected.encode()):
        return ServiceToken()

    token = _session_token(request, settings)
    if not token:
        return Anonymous()
    return decode_access_token(token, settings)


# --------------- Login ----------------------------------------------------

def authenticate(db: Session, settings: Settings, username: str, password: str) -> Optional[Authenticated]:
    """Check credentials against the configured admin first, then the users table."""
    if settings.admin_username and settings.admin_password:
        if hmac.compare_digest(username.encode(), settings.admin_username.encode()) and \
                hmac.compare_digest(password.encode(), settings.admin_password.encode()):
            return Authenticated(username=username, authority=ConfiguredAdmin())

    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(password, user.password_hash):
        return None
    return Authenticated(username=user.username, authority=StoredAdmin() if user.is_admin else None)


# --------------- Gate -----------------------------------------------------

class AuthorizationGate:
    """Per-route access decision over (capability, identity)."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def identify(self, request: Request) -> Identity:
        return resolve_identity(request, self.settings)

    def authorize(self, capability: Capability, identity: Identity) -> Decision:
        if capability == Capability.PUBLIC:
            return Decision.ALLOW
        if isinstance(identity, ServiceToken):
            return Decision.ALLOW
        if isinstance(identity, Authenticated):
            if capability == Capability.STAFF or identity.is_admin:
                return Decision.ALLOW
        return Decision.REJECT


def require(capability: Capability):
    """FastAPI dependency enforcing `capability`; yields the resolved Identity."""
    def dependency(request: Request) -> Identity:
        gate: AuthorizationGate = request.app.state.gate
        identity = gate.identify(request)
        if gate.authorize(capability, identity) is Decision.REJECT:
            logger.info(f"Rejected {request.method} {request.url.path} (requires {capability.value})")
            raise HTTPException(status_code=Decision.REJECT.value)
        return identity

    return dependency


def describe(identity: Identity) -> str:
    if isinstance(identity, Authenticated):
        return identity.username
    if isinstance(identity, ServiceToken):
        return "<service-token>"
    return "<anonymous>"
