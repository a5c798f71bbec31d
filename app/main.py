import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.routes import read_later, stories, users
from app.db.base import Base
from app.db.sessions import engine
from app.core.config import settings
from app.core.exceptions import AppError
from app.core.responses import error_response
from app.services.storage import KINDS, get_storage

# Import all models to ensure they're registered with Base
import app.models

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Story sharing platform: upload, search, read and save stories for later",
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    return error_response(exc.status_code, code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = ", ".join(".".join(str(p) for p in err.get("loc", ())[1:]) or "body" for err in exc.errors())
    return error_response(400, "VALIDATION_ERROR", f"Invalid request data: {fields}")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error in %s %s", request.method, request.url.path)
    return error_response(500, "SERVER_ERROR", "Internal server error")


# Register routers
app.include_router(users.router)
app.include_router(stories.router)
app.include_router(read_later.router)

# Uploaded files are served by filename
storage = get_storage()
storage.ensure_dirs()
for kind in KINDS:
    app.mount(f"/{kind}", StaticFiles(directory=str(storage.root / kind)), name=kind)


@app.on_event("startup")
async def startup_event():
    logger.info("%s v%s starting...", settings.APP_NAME, settings.APP_VERSION)
    logger.info("Serving uploads from %s", storage.root.resolve())


@app.get("/health")
def health():
    return {"status": "ok"}
