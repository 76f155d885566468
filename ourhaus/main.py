import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ourhaus.api.v1.api import api_router
from ourhaus.core.config import settings
from ourhaus.core.logging_config import configure_logging
from ourhaus.db.session import open_store
from ourhaus.db.store import DocumentStore
from ourhaus.services.identity_service import SIGNED_IN, AuthChange, IdentityService
from ourhaus.services.profile_service import ProfileService
from ourhaus.utils.membership_validation import MembershipError, PartialFailureError

logger = logging.getLogger(__name__)


def build_identity(store: DocumentStore) -> IdentityService:
    """Identity provider whose sign-ins create the user's profile."""
    identity = IdentityService(store)
    profiles = ProfileService(store)

    async def ensure_profile_on_sign_in(change: AuthChange) -> None:
        if change.event == SIGNED_IN:
            await profiles.ensure_profile(change.user_id, change.email, change.display_name)

    identity.on_auth_change(ensure_profile_on_sign_in)
    return identity


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    configure_logging()
    # Tests may install their own store before startup
    if getattr(app.state, "store", None) is None:
        app.state.store = await open_store()
    app.state.identity = build_identity(app.state.store)
    logger.info("%s started with %s store", settings.PROJECT_NAME, type(app.state.store).__name__)
    yield
    await app.state.store.close()
    logger.info("%s stopped", settings.PROJECT_NAME)


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.DESCRIPTION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MembershipError)
async def membership_error_handler(request: Request, exc: MembershipError):
    content = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, PartialFailureError):
        content.update(
            resource_id=exc.resource_id,
            completed=exc.completed,
            pending=exc.pending,
        )
        logger.error(
            "Partial failure on %s %s: completed=%s pending=%s",
            request.method, request.url.path, exc.completed, exc.pending,
        )
    elif exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=content)


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME}"}


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(api_router, prefix=settings.API_V1_STR)
