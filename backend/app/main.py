"""
main.py — FastAPI Application Entrypoint

Purpose:
- Initialize application services (logging, config, Entity Store, sessions).
- Register API routers and page routes.
- Define the health endpoint.
- Provide `app` object used by ASGI server (uvicorn).

Routing and wiring only; business logic lives under app/services.
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import pages
from app.api.exception_handlers import setup_exception_handlers
from app.api.v1 import auth, categories, dashboard, models, notifications, organizations, products, users
from app.core.config import Settings, settings
from app.core.logging import configure_logging, get_logger
from app.services.inventory.session import SessionRegistry
from app.services.store import build_entity_store
from app.services.store.base import EntityStore

logger = get_logger(__name__)


def create_app(config: Settings = settings, store: Optional[EntityStore] = None) -> FastAPI:
    """
    Build the application. Tests pass their own `store`; otherwise the
    backend named by ENTITY_STORE_BACKEND is constructed.
    """
    configure_logging(config.LOG_LEVEL)

    application = FastAPI(
        title=f"{config.APP_NAME} Backend",
        description="Multi-organization inventory backend",
        version="0.1.0",
    )

    # Application root: one store and one session registry per process
    application.state.store = store if store is not None else build_entity_store(config)
    application.state.sessions = SessionRegistry(application.state.store)

    # -------------------------------------------------------------------------
    # CORS (local frontend development)
    # -------------------------------------------------------------------------
    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(application)

    # -------------------------------------------------------------------------
    # Router Registration
    # -------------------------------------------------------------------------

    # Mount all v1 API routers under /api/v1 prefix
    application.include_router(auth.router, prefix="/api/v1")
    application.include_router(organizations.router, prefix="/api/v1")
    application.include_router(categories.router, prefix="/api/v1")
    application.include_router(models.router, prefix="/api/v1")
    application.include_router(products.router, prefix="/api/v1")
    application.include_router(users.router, prefix="/api/v1")
    application.include_router(notifications.router, prefix="/api/v1")
    application.include_router(dashboard.router, prefix="/api/v1")
    application.include_router(pages.router)

    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------

    @application.get("/health")
    def health():
        return {
            "status": "ok",
            "message": f"{config.APP_NAME} backend running",
            "store": application.state.store.backend_name,
        }

    logger.info("%s started with the %s entity store", config.APP_NAME, application.state.store.backend_name)
    return application


app = create_app()
