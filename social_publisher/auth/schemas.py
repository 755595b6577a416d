# social_publisher/auth/schemas.py
from pydantic import BaseModel

class TokenPayload(BaseModel):
    sub: str
    exp: int
    jti: str
    type: str = "access"
