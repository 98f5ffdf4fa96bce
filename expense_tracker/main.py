import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .core.logging import configure_logging
from .database import init_db
from .routers import auth as auth_router
from .routers import expenses as expenses_router
from .routers import reports as reports_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Expense tracker started (%s)", settings.environment)
    yield


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Expense Tracker – Backend", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(auth_router.router)
    app.include_router(expenses_router.router)
    app.include_router(reports_router.router)

    return app


app = create_app()
