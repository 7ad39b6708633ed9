import os
from datetime import datetime, timedelta, timezone

from dotenv import load_dotenv
from jose import JWTError, jwt

load_dotenv()

# JWT settings
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
ALGORITHM = "HS256"

# Tokens are issued by the auth service; this module only needs to read them.
# `JWT_ACCESS_TOKEN_EXPIRE_HOURS` controls the `exp` claim of tokens minted
# here (tests and internal tooling). Unset or non-positive means no expiry.
env_val = os.getenv("JWT_ACCESS_TOKEN_EXPIRE_HOURS")
if env_val is None or env_val == "":
    ACCESS_TOKEN_EXPIRE_HOURS = None
else:
    try:
        ACCESS_TOKEN_EXPIRE_HOURS = int(env_val)
    except ValueError:
        ACCESS_TOKEN_EXPIRE_HOURS = None


def create_access_token(data: dict):
    """Create a signed token whose `sub` claim is the user's email."""
    to_encode = data.copy()
    if ACCESS_TOKEN_EXPIRE_HOURS is not None and ACCESS_TOKEN_EXPIRE_HOURS > 0:
        expire = datetime.now(timezone.utc) + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
        to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str):
    """Verify and decode a JWT token"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
