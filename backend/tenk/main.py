import logging
import sys
from contextlib import asynccontextmanager

from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from tenk.api.v1 import activities, admin, auth, challenge, coach, gamification, strava

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("tenk").setLevel(logging.DEBUG)
from tenk.config import settings
from tenk.core.rate_limit import close_redis
from tenk.db.session import async_session_maker, init_db
from tenk.services.badges import sync_badge_catalog
from tenk.services.crypto import validate_encryption_key
from tenk.services.http_client import close_http_client, init_http_client
from prometheus_client import make_asgi_app

logger = logging.getLogger("tenk.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_encryption_key()
    settings.validate_jwt_config()
    await init_db()
    async with async_session_maker() as session:
        await sync_badge_catalog(session)
        await session.commit()
    init_http_client()
    logger.info("Startup complete (env=%s)", settings.app_env)
    yield
    await close_http_client()
    await close_redis()


limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit_default])

app = FastAPI(
    title="10K Weekly Challenge API",
    description="Team fitness challenge: weekly distance targets, streaks, badges, Strava import, AI coach",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "camera=(self), microphone=()"
        if settings.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth.router, prefix="/api/v1")
app.include_router(challenge.router, prefix="/api/v1")
app.include_router(activities.router, prefix="/api/v1")
app.include_router(gamification.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")
app.include_router(strava.router, prefix="/api/v1")
app.include_router(coach.router, prefix="/api/v1")

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    return {"status": "ok"}
