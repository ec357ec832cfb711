from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.errors import AppError
from app.core.security import decode_token, ACCESS_TOKEN_TYPE
from app.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def get_current_user(token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)) -> User:
    if not token:
        raise AppError(401, "UNAUTHORIZED", "No token provided")

    try:
        payload = decode_token(token, ACCESS_TOKEN_TYPE)
    except JWTError:
        raise AppError(401, "INVALID_TOKEN", "Invalid or expired token")

    user = await db.get(User, payload["sub"])
    if user is None:
        raise AppError(401, "INVALID_TOKEN", "Invalid or expired token")
    return user
