from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, status
from jose import JWTError
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db
from app.core.errors import AppError
from app.core.responses import envelope
from app.core.security import (
    verify_password, get_password_hash, create_access_token, create_refresh_token,
    decode_token, REFRESH_TOKEN_TYPE,
)
from app.models.session import Session
from app.models.user import User
from app.routers.deps import get_current_user
from app.schemas.auth import RegisterRequest, LoginRequest, RefreshRequest, GoogleTokensRequest, UserResponse
from app.services.google_accounts import GoogleAccountService
from app.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


async def _issue_tokens(db: AsyncSession, user: User) -> dict:
    token = create_access_token(user.id, user.email)
    refresh_token = create_refresh_token(user.id)

    db.add(Session(
        user_id=user.id,
        token=refresh_token,
        expires_at=datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    ))
    await db.commit()

    return {
        "token": token,
        "refreshToken": refresh_token,
        "user": {"id": user.id, "email": user.email, "name": user.name},
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == data.email))
    if result.scalar_one_or_none():
        logger.warning(f"Registration rejected, user exists: {data.email}")
        raise AppError(400, "USER_EXISTS", "User already exists")

    user = User(email=data.email, password=get_password_hash(data.password), name=data.name)
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"Registered user {user.id}")
    return envelope(await _issue_tokens(db, user))


@router.post("/login")
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(data.password, user.password):
        raise AppError(401, "INVALID_CREDENTIALS", "Invalid credentials")

    return envelope(await _issue_tokens(db, user))


@router.post("/refresh")
async def refresh(data: RefreshRequest, db: AsyncSession = Depends(get_db)):
    if not data.refresh_token:
        raise AppError(400, "NO_REFRESH_TOKEN", "Refresh token required")

    try:
        payload = decode_token(data.refresh_token, REFRESH_TOKEN_TYPE)
    except JWTError:
        raise AppError(401, "INVALID_REFRESH_TOKEN", "Invalid refresh token")

    result = await db.execute(
        select(Session).where(
            Session.token == data.refresh_token,
            Session.expires_at > datetime.utcnow(),
        )
    )
    if not result.scalar_one_or_none():
        raise AppError(401, "INVALID_REFRESH_TOKEN", "Invalid refresh token")

    user = await db.get(User, payload["sub"])
    if not user:
        raise AppError(404, "USER_NOT_FOUND", "User not found")

    return envelope({"token": create_access_token(user.id, user.email)})


@router.delete("/logout")
async def logout(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await db.execute(delete(Session).where(Session.user_id == current_user.id))
    await db.commit()
    return envelope({"message": "Logged out successfully"})


@router.get("/me")
async def read_users_me(current_user: User = Depends(get_current_user)):
    return envelope(UserResponse.model_validate(current_user).model_dump(mode="json"))


@router.put("/google/tokens")
async def store_google_tokens(
    data: GoogleTokensRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    account = await GoogleAccountService(db, current_user.id).save_tokens(
        access_token=data.access_token,
        refresh_token=data.refresh_token,
        expires_in=data.expires_in,
        email=data.email,
    )
    return envelope({"connected": True, "email": account.email})
