import logging
import os
from contextlib import asynccontextmanager

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from routes.admin_route import router as admin_router
from routes.external_route import router as external_router
from routes.image_route import router as image_router
from services.storage.backend_factory import StorageBindings
from services.storage.object_store_backend import LocalObjectStore
from services.storage.relay_backend import DEFAULT_API_BASE
from utils.database_init import AsyncDatabaseInitializer

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite metadata store (at DATABASE_DIR/app.db)
      - the object store directory (OBJECT_STORE_DIR, optional)
      - the shared HTTP client used by the relay backend
    and attach them to `app.state`.
    """
    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    timeout = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30"))

    object_store = None
    object_store_dir = os.getenv("OBJECT_STORE_DIR")
    if object_store_dir and object_store_dir.strip():
        try:
            object_store = LocalObjectStore(object_store_dir)
        except OSError as exc:
            raise RuntimeError(f"Failed to create object store at {object_store_dir!r}") from exc
    else:
        LOGGER.warning("OBJECT_STORE_DIR is not set; the object_store backend is unavailable")

    http_client = httpx.AsyncClient(timeout=timeout)
    app.state.storage_bindings = StorageBindings(
        http_client=http_client,
        object_store=object_store,
        relay_api_base=os.getenv("TELEGRAM_API_BASE", DEFAULT_API_BASE),
        timeout=timeout,
    )

    try:
        yield
    finally:
        await http_client.aclose()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.get("/", include_in_schema=False)
    async def probe():
        """
        Report that the gateway is up and list its endpoint groups.
        """
        return {
            "status": "Image Bed API is running smoothly.",
            "endpoints": {
                "public_gallery": "/api/public/images",
                "admin_api": "/api/admin/*",
                "external_api": "/api/external/*",
            },
        }

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports which bindings are present.
        """
        bindings = getattr(request.app.state, "storage_bindings", None)
        return {
            "ok": True,
            "db_initialized": hasattr(request.app.state, "db_initializer"),
            "object_store_available": bool(bindings and bindings.object_store is not None),
        }

    # Register application routers
    app.include_router(image_router)
    app.include_router(external_router)
    app.include_router(admin_router)

    return app


app = create_app()
