"""Staff credentials: bcrypt password hashes and signed JWT bearer tokens"""
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from infrastructure.settings import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES

BCRYPT_MAX_BYTES = 72

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__ident="2b"
)


def _prepare_password(password: str) -> str:
    """bcrypt ignores everything past 72 bytes; longer secrets are reduced to their SHA256 hex digest"""
    password_bytes = password.encode('utf-8')
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        return hashlib.sha256(password_bytes).hexdigest()
    return password


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(_prepare_password(plain_password), hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(_prepare_password(password))


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Sign the claims with an issue time and an expiry (settings default when none given)"""
    issued_at = datetime.now(timezone.utc)
    claims = dict(data)
    claims["iat"] = issued_at
    claims["exp"] = issued_at + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verified claims; raises jose.JWTError when the token is invalid, expired or has no subject"""
    claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    if not claims.get("sub"):
        raise JWTError("Token has no subject")
    return claims
