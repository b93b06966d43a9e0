import logging
import os
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from backoffice.adapters.auth_provider import LocalAuthProvider
from backoffice.adapters.blob_storage import LocalBlobStorage
from backoffice.api.health import router as health_router
from backoffice.api.routes_auth import router as auth_router
from backoffice.api.routes_cart import router as cart_router
from backoffice.api.routes_menu import router as menu_router
from backoffice.api.routes_reports import router as reports_router
from backoffice.api.routes_stock import router as stock_router
from backoffice.api.routes_users import router as users_router
from backoffice.config import settings
from backoffice.db import init_db
from backoffice.logging_config import configure_logging

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    configure_logging()
    init_db()

    storage = LocalBlobStorage()
    os.makedirs(storage.root_dir, exist_ok=True)
    app.state.blob_storage = storage

    provider = LocalAuthProvider()
    app.state.auth_provider = provider

    def log_auth_change(event, identity):
        log.info("auth %s: %s <%s>", event, identity.uid, identity.email)

    unsubscribe = provider.on_auth_state_changed(log_auth_change)

    # scheduler for dropping idle sessions
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        provider.expire_idle,
        "interval",
        seconds=settings.SESSION_SWEEP_SECONDS,
        id="expire_sessions",
    )
    scheduler.start()

    try:
        yield
    finally:
        scheduler.shutdown(wait=False)
        unsubscribe()
        provider.close()
        app.state.auth_provider = None


app = FastAPI(title="Restaurant Back Office", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(auth_router, tags=["auth"])

app.include_router(menu_router, tags=["menu"])

app.include_router(stock_router, tags=["stock"])

app.include_router(users_router, tags=["users"])

app.include_router(reports_router, tags=["reports"])

app.include_router(cart_router, tags=["cart"])

app.mount(
    "/blobs",
    StaticFiles(directory=settings.BLOB_STORAGE_DIR, check_dir=False),
    name="blobs",
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.APP_HOST, port=settings.APP_PORT)
