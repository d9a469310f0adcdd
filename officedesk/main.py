from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from officedesk.api.v1.api import api_router
from officedesk.core.cache import DashboardCache, build_cache_client
from officedesk.core.config import settings
from officedesk.core.errors import register_exception_handlers
from officedesk.core.logging import setup_logging
from officedesk.db.session import init_db
from officedesk.services.email import EmailSender


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )

    # Process-wide collaborators, handed to requests through officedesk.api.deps
    app.state.dashboard_cache = DashboardCache(
        build_cache_client(settings.REDIS_URL), settings.DASHBOARD_CACHE_TTL
    )
    app.state.email_sender = EmailSender()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, specify actual origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()
