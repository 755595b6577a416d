# social_publisher/auth/utils.py
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

import structlog
from jose import jwt, JWTError
from cryptography.fernet import Fernet, InvalidToken

logger = structlog.get_logger(__name__)

# Config (env)
SECRET_KEY = os.getenv("SECRET_KEY", "change_me_now")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
OAUTH_TOKEN_KEY = os.getenv("OAUTH_TOKEN_KEY")  # must be a base64 key for Fernet, set in prod

if not OAUTH_TOKEN_KEY:
    # dev fallback (not for production)
    OAUTH_TOKEN_KEY = Fernet.generate_key().decode()

fernet = Fernet(OAUTH_TOKEN_KEY.encode())

# --- JWT helpers ---
def _now_ts() -> int:
    return int(datetime.now(timezone.utc).timestamp())

def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> Dict[str, Any]:
    """
    Issue an access token for `subject`.
    Sessions are issued elsewhere; this is used by operators and the test suite.
    """
    jti = str(uuid.uuid4())
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {"sub": subject, "exp": int(expire.timestamp()), "jti": jti, "type": "access", "iat": _now_ts()}
    token = jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)
    logger.debug("create_access_token", sub=subject, jti=jti, exp=payload["exp"])
    return {"token": token, "jti": jti, "exp": payload["exp"]}

def decode_token(token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except JWTError as e:
        logger.warning("token_decode_failed", error=str(e))
        raise

# --- OAuth token encryption ---
def encrypt_token(plaintext: Optional[str]) -> Optional[str]:
    if plaintext is None:
        return None
    return fernet.encrypt(plaintext.encode()).decode()

def decrypt_token(ciphertext: Optional[str]) -> Optional[str]:
    if not ciphertext:
        return None
    try:
        return fernet.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.warning("oauth_token_decrypt_failed")
        return None
