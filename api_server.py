"""
FastAPI server of the calibration documents API.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings, get_settings
from labdocs.api import DocumentAPI
from labdocs.database import DatabaseManager, RecordRepository
from labdocs.service import DocumentService, create_document_service


def setup_logging(settings: Settings):
    """Configures root logging to the log file and the console."""
    settings.create_directories()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(settings.log_file),
            logging.StreamHandler()
        ]
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle."""
    logging.info("Starting API server...")
    app.state.db_manager.create_tables()
    logging.info("Database ready")

    yield

    logging.info("Stopping API server...")
    app.state.db_manager.engine.dispose()


def create_app(settings: Optional[Settings] = None, service: Optional[DocumentService] = None,
               db_manager: Optional[DatabaseManager] = None) -> FastAPI:
    """
    Builds the application.

    Args:
        settings: Settings; the global ones by default
        service: Document service; built from settings by default
        db_manager: Database manager; built from settings by default
    """
    settings = settings or get_settings()
    setup_logging(settings)

    if db_manager is None:
        db_manager = DatabaseManager(settings.database_url)
    if service is None:
        service = create_document_service(settings, RecordRepository(db_manager))

    app = FastAPI(
        title="Calibration Documents API",
        description="Calibration certificates and service job reports",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    document_api = DocumentAPI(service, settings.api_key)
    app.state.document_api = document_api
    app.state.db_manager = db_manager

    @app.get("/health", tags=["monitoring"])
    def health_check():
        """API, database and document directory health."""
        health_status = {
            "status": "checking",
            "timestamp": datetime.now().isoformat(),
            "components": {
                "api": {"status": "healthy", "message": "API is running"}
            }
        }

        if db_manager.health_check():
            health_status["components"]["database"] = {
                "status": "healthy",
                "message": "Database connection is active"
            }
        else:
            health_status["components"]["database"] = {
                "status": "unhealthy",
                "message": "Database is not reachable"
            }

        try:
            counter = service.allocator.peek()
            health_status["components"]["counter"] = {
                "status": "healthy",
                "message": f"Last certificate {counter.fiscal_year}/{counter.sequence}" if counter
                else "No certificate issued yet"
            }
        except Exception as e:
            health_status["components"]["counter"] = {
                "status": "unhealthy",
                "message": f"Counter error: {e}"
            }

        all_healthy = all(
            component.get("status") == "healthy"
            for component in health_status["components"].values()
        )
        health_status["status"] = "healthy" if all_healthy else "unhealthy"

        return JSONResponse(content=health_status, status_code=200 if all_healthy else 503)

    # Mounted last so /health is matched first
    app.mount("/", document_api.app)

    return app


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "api_server:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
