import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

from app.core.errors import AppError
from app.models.google_account import GoogleAccount
from app.models.user import User
from app.services.google_accounts import GoogleAccountService

@pytest_asyncio.fixture
async def user(db_session):
    user = User(email="tokens@example.com", password="x", name="Tokens")
    db_session.add(user)
    await db_session.commit()
    return user

@pytest.mark.asyncio
async def test_not_connected(db_session, user):
    with pytest.raises(AppError) as exc:
        await GoogleAccountService(db_session, user.id).get_access_token()
    assert exc.value.status_code == 400
    assert exc.value.code == "GOOGLE_NOT_CONNECTED"

@pytest.mark.asyncio
async def test_valid_token_is_not_refreshed(db_session, user, monkeypatch):
    refresh = AsyncMock()
    monkeypatch.setattr(GoogleAccountService, "refresh_access_token", refresh)
    service = GoogleAccountService(db_session, user.id)
    await service.save_tokens("fresh", refresh_token="r1", expires_in=3600)

    assert await service.get_access_token() == "fresh"
    refresh.assert_not_called()

@pytest.mark.asyncio
async def test_token_near_expiry_is_refreshed(db_session, user, monkeypatch):
    refresh = AsyncMock(return_value={"access_token": "renewed", "expires_in": 3599})
    monkeypatch.setattr(GoogleAccountService, "refresh_access_token", refresh)
    db_session.add(GoogleAccount(
        user_id=user.id,
        access_token="stale",
        refresh_token="r1",
        token_expiry=datetime.utcnow() + timedelta(seconds=30),
    ))
    await db_session.commit()

    service = GoogleAccountService(db_session, user.id)
    assert await service.get_access_token() == "renewed"
    refresh.assert_called_once_with("r1")

    account = await service.get_account()
    assert account.refresh_token == "r1"
    assert account.token_expiry > datetime.utcnow() + timedelta(minutes=50)

@pytest.mark.asyncio
async def test_save_tokens_keeps_refresh_token(db_session, user):
    service = GoogleAccountService(db_session, user.id)
    await service.save_tokens("a1", refresh_token="r1", email="me@gmail.com")
    account = await service.save_tokens("a2")

    assert account.access_token == "a2"
    assert account.refresh_token == "r1"
    assert account.email == "me@gmail.com"
