import hashlib
from datetime import datetime, timedelta, timezone
from jose import jwt
from passlib.context import CryptContext

otp_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

def hash_otp_code(code: str) -> str:
    return otp_context.hash(code)

def verify_otp_code(code: str, code_hash: str) -> bool:
    try:
        return otp_context.verify(code, code_hash)
    except ValueError:
        return False

def hash_token(token: str) -> str:
    # Deterministic so that a session row can be looked up by the token it was issued for.
    return hashlib.sha256(str(token).encode("utf-8")).hexdigest()

def create_jwt(payload: dict, secret: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    data = payload.copy()
    data.update({"iat": int(now.timestamp()), "exp": int((now + expires_delta).timestamp())})
    return jwt.encode(data, secret, algorithm="HS256")

def decode_jwt(token: str, secret: str) -> dict:
    return jwt.decode(token, secret, algorithms=["HS256"])
