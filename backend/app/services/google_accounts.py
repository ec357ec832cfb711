from datetime import datetime, timedelta
from typing import Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import AppError
from app.models.google_account import GoogleAccount
from app.services.google_workspace import GoogleWorkspaceClient
from app.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

# Refresh a little early so a token never expires mid-request
EXPIRY_SKEW = timedelta(minutes=1)


class GoogleAccountService:
    GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

    def __init__(self, db: AsyncSession, user_id: str):
        self.db = db
        self.user_id = user_id

    async def get_account(self) -> Optional[GoogleAccount]:
        result = await self.db.execute(
            select(GoogleAccount).where(GoogleAccount.user_id == self.user_id)
        )
        return result.scalars().first()

    async def save_tokens(self, access_token: str, refresh_token: Optional[str] = None,
                          expires_in: Optional[int] = None, email: Optional[str] = None) -> GoogleAccount:
        account = await self.get_account()
        expiry = datetime.utcnow() + timedelta(seconds=expires_in) if expires_in else None

        if account:
            account.access_token = access_token
            if refresh_token:
                account.refresh_token = refresh_token
            account.token_expiry = expiry
            if email:
                account.email = email
        else:
            account = GoogleAccount(
                user_id=self.user_id,
                email=email,
                access_token=access_token,
                refresh_token=refresh_token,
                token_expiry=expiry,
            )
            self.db.add(account)

        await self.db.commit()
        await self.db.refresh(account)
        return account

    @classmethod
    async def refresh_access_token(cls, refresh_token: str) -> dict:
        if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
            raise ValueError("Google Client ID and Secret must be configured.")

        data = {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token"
        }

        async with httpx.AsyncClient() as client:
            response = await client.post(cls.GOOGLE_TOKEN_URL, data=data)
            response.raise_for_status()
            return response.json()

    async def get_access_token(self) -> str:
        account = await self.get_account()
        if not account or not account.access_token:
            raise AppError(400, "GOOGLE_NOT_CONNECTED", "Google account not connected")

        expired = account.token_expiry is not None and account.token_expiry <= datetime.utcnow() + EXPIRY_SKEW
        if expired and account.refresh_token:
            logger.info(f"Refreshing Google access token for user {self.user_id}")
            tokens = await self.refresh_access_token(account.refresh_token)
            account.access_token = tokens["access_token"]
            if tokens.get("expires_in"):
                account.token_expiry = datetime.utcnow() + timedelta(seconds=int(tokens["expires_in"]))
            if tokens.get("refresh_token"):
                account.refresh_token = tokens["refresh_token"]
            await self.db.commit()

        return account.access_token

    async def get_client(self) -> GoogleWorkspaceClient:
        return GoogleWorkspaceClient(await self.get_access_token())
