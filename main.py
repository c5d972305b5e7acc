# main.py

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from pymongo.errors import DuplicateKeyError, PyMongoError
from config import Settings
from database import MongoDatabase
from routers import employee_router, labour_router
from utils.exceptions import ServiceError
import logging
import os

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def create_app(settings: Settings = None, mongo_client=None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    mongo = MongoDatabase(settings.mongodb_uri, settings.mongodb_db, client=mongo_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await mongo.connect()
        yield
        mongo.close()

    app = FastAPI(title="KissanPartner Workforce Management", lifespan=lifespan)
    app.state.settings = settings
    app.state.mongo = mongo

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{field}: {first.get('msg')}" if field else first.get("msg")
        else:
            message = "Invalid request"
        return _error(400, message)

    @app.exception_handler(DuplicateKeyError)
    async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
        return _error(400, "A record with the same unique field already exists")

    @app.exception_handler(PyMongoError)
    async def store_error_handler(request: Request, exc: PyMongoError):
        logger.error("Database operation failed on %s %s", request.method, request.url.path, exc_info=exc)
        return _error(500, "Database operation failed")

    app.include_router(employee_router.router)
    app.include_router(labour_router.router)

    if os.path.isdir(settings.uploads_dir):
        app.mount("/uploads", StaticFiles(directory=settings.uploads_dir), name="uploads")

    # Built web client, served last so API routes take precedence
    if os.path.isdir(settings.static_dir):
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="client")
    else:
        @app.get("/")
        def read_root():
            return {"message": "Welcome to KissanPartner Workforce Management"}

    return app


app = create_app()
