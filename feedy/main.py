import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.endpoints import exports, feedback, insights, menus, public, qr, responses, surveys, users
from .config import Settings
from .errors import ExportError, InsightsError, NotFoundError, PersistenceError
from .insights import InsightsService
from .persistence import BaseDatabase, open_database
from .schemas import HealthResponse

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[BaseDatabase] = None,
    insights_service: Optional[InsightsService] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    # --- Lifecycle Events ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting...")
        if database is not None:
            await database.init()
            app.state.database = database
        else:
            app.state.database = await open_database(settings)
        yield
        logger.info("Application shutting down...")
        await app.state.database.close()

    app = FastAPI(title="Feedy Backend", lifespan=lifespan)
    app.state.settings = settings
    app.state.insights = insights_service or InsightsService(
        settings.insights_api_key,
        base_url=settings.insights_base_url,
        model=settings.insights_model,
    )

    # --- CORS Middleware ---
    logger.info("CORS: allowed origins %s", settings.allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Error mapping ---
    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        # The client shows the message with a manual retry button
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)}
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(ExportError)
    async def export_error_handler(request: Request, exc: ExportError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(InsightsError)
    async def insights_error_handler(request: Request, exc: InsightsError):
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})

    # --- Routers ---
    app.include_router(public.router, prefix="/api/public", tags=["public"])
    app.include_router(feedback.router, prefix="/api", tags=["feedback"])
    app.include_router(surveys.router, prefix="/api/surveys", tags=["surveys"])
    app.include_router(responses.router, prefix="/api/survey-responses", tags=["survey responses"])
    app.include_router(menus.router, prefix="/api/menus", tags=["menus"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(exports.router, prefix="/api/export", tags=["export"])
    app.include_router(insights.router, prefix="/api/insights", tags=["insights"])
    app.include_router(qr.router, prefix="/api/qr", tags=["qr"])

    @app.get("/api/health", response_model=HealthResponse)
    async def health(request: Request):
        return HealthResponse(backend=request.app.state.database.backend_name)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    # Host and port from the environment, with local defaults
    APP_HOST = os.getenv("APP_HOST", "127.0.0.1")
    APP_PORT = int(os.getenv("APP_PORT", "8000"))
    RELOAD_APP = os.getenv("RELOAD_APP", "True").lower() == "true"

    uvicorn.run("feedy.main:app", host=APP_HOST, port=APP_PORT, reload=RELOAD_APP)
