import time
from datetime import datetime, timezone

from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.database import engine, Base
from app.core.errors import register_error_handlers, unhandled_error_response
from app import models  # ensure models are registered with SQLAlchemy
from app.routers import auth, inbox, calendar, tasks, chat, assistant, connection_tests
from app.utils.logger import get_logger

logger = get_logger("api")
settings = get_settings()
started_at = time.monotonic()

app = FastAPI(
    title="Martin++ API",
    description="Personal assistant backend: inbox triage, calendar, tasks and chat",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} -> {response.status_code}")
        return response
    except Exception as e:
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {e}")
        return unhandled_error_response(e)


@app.on_event("startup")
async def startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Martin++ API started ({settings.ENVIRONMENT})")


api = APIRouter(prefix=f"/api/{settings.API_VERSION}")
api.include_router(auth.router)
api.include_router(inbox.router)
api.include_router(calendar.router)
api.include_router(tasks.router)
api.include_router(chat.router)
api.include_router(assistant.router)
api.include_router(connection_tests.router)
app.include_router(api)


@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": time.monotonic() - started_at,
        "environment": settings.ENVIRONMENT,
    }
