# supportdesk/auth.py
from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from passlib.context import CryptContext

from supportdesk.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from supportdesk.errors import AuthenticationError

# Use argon2 for password hashing
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

# Hash password
def get_password_hash(password: str):
    return pwd_context.hash(password)

# Verify password
def verify_password(plain_password: str, hashed_password: str):
    if not plain_password or not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)

# Create JWT token; the subject is the user id
def create_access_token(user_id, expires_delta: timedelta | None = None):
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

# Decode JWT token and return the user id it was issued for
def decode_access_token(token: str) -> str:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise AuthenticationError("Not authorized, token failed")
    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError("Not authorized, token failed")
    return user_id
