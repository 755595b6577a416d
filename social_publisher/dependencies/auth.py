import uuid
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from pydantic import ValidationError
from social_publisher.auth.utils import decode_token
from social_publisher.auth.schemas import TokenPayload
from social_publisher.auth.repository import UserRepository
from social_publisher.dependencies.db import get_session_dep
from sqlmodel.ext.asyncio.session import AsyncSession

# sessions are issued by the surrounding application; this service only reads them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

async def get_current_user(token: str = Depends(oauth2_scheme), session: AsyncSession = Depends(get_session_dep)):
    try:
        payload = TokenPayload(**decode_token(token))
        if payload.type != "access":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token type")
        user_id = uuid.UUID(payload.sub)
    except (JWTError, ValidationError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")

    user = await UserRepository(session).get_active(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="user not found")
    return user
