import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from . import config
from .api import audit_logs, auth, dashboard, dues, households, residents, system
from .config import Base, settings
from .constants import DEFAULT_ROLES
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .core.request_context import request_id_middleware
from .models.models import Role

logger = logging.getLogger(__name__)


def ensure_default_roles(session: Session) -> None:
    for name, description in DEFAULT_ROLES:
        role = session.query(Role).filter(Role.name == name).first()
        if not role:
            session.add(Role(name=name, description=description))
    session.commit()


@asynccontextmanager
async def lifespan(_: FastAPI):
    # In dev we make sure tables exist. Alembic migrations should be used for real schema evolution.
    Base.metadata.create_all(bind=config.engine)
    with config.SessionLocal() as session:
        ensure_default_roles(session)
    if settings.jwt_secret == "dev-secret-please-change":
        logger.warning("JWT secret is using the insecure default; set JWT_SECRET in the environment.")
    yield


configure_logging(settings.log_level, settings.log_format)

app = FastAPI(title="HOA Admin - Dues & Ledger", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(request_id_middleware)
register_exception_handlers(app)

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(households.router, prefix="/households", tags=["households"])
app.include_router(residents.router, prefix="/residents", tags=["residents"])
app.include_router(dues.router, prefix="/dues", tags=["dues"])
app.include_router(dashboard.router, tags=["dashboard"])
app.include_router(audit_logs.router)
app.include_router(system.router, prefix="/system", tags=["system"])
