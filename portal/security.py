from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt, JWTError
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from portal.config import settings
from portal.exceptions.handler import PermissionDeniedException

ALGORITHM = "HS256"

# 1. Password hashing (BCrypt)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# 2. OAuth2 scheme; token may also arrive as a cookie
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

# --- Core models ---

class CurrentUser(BaseModel):
    """Current logged-in user context"""
    id: int
    email: str
    role: str
    first_name: str = ""
    last_name: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_patient(self) -> bool:
        return self.role == "patient"

    @property
    def is_provider(self) -> bool:
        return self.role == "provider"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

# --- Helpers ---

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def _encode(data: dict, token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    to_encode.update({
        "exp": datetime.now(timezone.utc) + expires_delta,
        "iat": datetime.now(timezone.utc),
        "type": token_type,
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    return _encode(
        data, "access",
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

def create_refresh_token(user_id: int) -> str:
    return _encode(
        {"user_id": user_id}, "refresh",
        timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES)
    )

def create_email_verification_token(user_id: int) -> str:
    return _encode(
        {"user_id": user_id}, "email_verification",
        timedelta(minutes=settings.EMAIL_VERIFICATION_EXPIRE_MINUTES)
    )

def decode_token(token: str, token_type: str) -> dict:
    """Decode a JWT and check its type. Raises JWTError on any mismatch."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    if payload.get("type") != token_type:
        raise JWTError(f"Expected {token_type} token")
    return payload

# --- FastAPI dependencies ---

def get_token_from_request(
    request: Request,
    token_from_header: Optional[str] = Depends(oauth2_scheme)
) -> Optional[str]:
    """
    Get token from request: prefer cookie, then Authorization header.
    """
    token = request.cookies.get(settings.ACCESS_TOKEN_COOKIE_NAME)
    if not token and token_from_header:
        token = token_from_header
    return token

def get_current_user(
    token: Optional[str] = Depends(get_token_from_request)
) -> CurrentUser:
    """
    Dependency: validate token and extract user. Use in router as user: CurrentUser = Depends(get_current_user).
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    try:
        payload = decode_token(token, "access")
    except JWTError:
        raise credentials_exception

    user_id = payload.get("user_id")
    email = payload.get("sub")
    role = payload.get("role")
    if user_id is None or email is None or role is None:
        raise credentials_exception

    return CurrentUser(
        id=user_id,
        email=email,
        role=role,
        first_name=payload.get("first_name", ""),
        last_name=payload.get("last_name", ""),
    )

def require_roles(*roles: str):
    """
    Dependency factory: allow only the given roles.

        user: CurrentUser = Depends(require_roles("provider"))
    """
    def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            label = " or ".join(role.capitalize() for role in roles)
            raise PermissionDeniedException(f"Access denied: {label} role required")
        return current_user
    return _checker
