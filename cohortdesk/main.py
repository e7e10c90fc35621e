"""
cohortdesk/main.py
FastAPI application: routers, error handlers, CORS and DB lifecycle
"""
import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cohortdesk.config.feature_flags import feature_flags
from cohortdesk.database import init_db, close_db
from cohortdesk.middleware import setup_error_handlers
from cohortdesk.routes import assignments, cohorts, mentors, programs, students

logging.basicConfig(
    level=getattr(logging, feature_flags.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    try:
        await init_db()
        logger.info("Database connected successfully")
    except Exception as e:
        logger.error(f"Failed to connect to database: {str(e)}")
        raise

    yield

    logger.info("Shutting down application...")
    try:
        await close_db()
    except Exception as e:
        logger.error(f"Error closing database connection: {str(e)}")


def create_app(debug: bool = feature_flags.DEBUG) -> FastAPI:
    app = FastAPI(
        title="CohortDesk API",
        description="Programs, cohorts, mentors and student enrollment",
        version=VERSION,
        lifespan=lifespan
    )

    origins = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]
    allowed_origins = os.getenv("ALLOWED_ORIGINS", "").split(",")
    origins.extend(origin.strip() for origin in allowed_origins if origin.strip())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )

    setup_error_handlers(app, debug=debug)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "version": VERSION,
            "flags": feature_flags.get_all_flags(),
        }

    app.include_router(programs.router)
    app.include_router(cohorts.router)
    app.include_router(mentors.router)
    app.include_router(students.router)
    app.include_router(assignments.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    reload = os.getenv("ENVIRONMENT", "development") == "development"

    logger.info(f"Starting server on {host}:{port} (reload={reload})")

    uvicorn.run(
        "cohortdesk.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=feature_flags.LOG_LEVEL.lower()
    )
