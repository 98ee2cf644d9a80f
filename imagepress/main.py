from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
import logging
from logging.handlers import RotatingFileHandler

from imagepress.core.config import get_settings
from imagepress.core.dependencies import get_cleanup_service, get_processor_service, get_storage_service
from imagepress.core.exceptions import ImagePressException
from imagepress.api.v1.router import api_router

settings = get_settings()

def setup_logging():
    logger = logging.getLogger()
    logger.setLevel(settings.LOG_LEVEL)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        logging.Formatter(settings.LOG_FORMAT)
    )
    logger.addHandler(console_handler)

    if not settings.LOG_TO_FILE:
        return

    log_dir = settings.get_log_dir()
    file_handler = RotatingFileHandler(
        log_dir / 'imagepress.log',
        maxBytes=10*1024*1024,
        backupCount=5
    )
    file_handler.setFormatter(
        logging.Formatter(settings.LOG_FORMAT)
    )
    logger.addHandler(file_handler)

setup_logging()
logger = logging.getLogger("imagepress")

@asynccontextmanager
async def lifespan(app: FastAPI):
    await get_storage_service().initialize()
    get_cleanup_service().start()
    logger.info(f"Max file size: {settings.MAX_FILE_SIZE / 1024 / 1024:.2f} MB")
    logger.info(f"Max files per job: {settings.MAX_FILES}")
    logger.info(f"File TTL: {settings.FILE_TTL} seconds")
    yield
    await get_cleanup_service().stop()
    get_processor_service().shutdown()

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.DESCRIPTION,
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"]
)

@app.exception_handler(ImagePressException)
async def imagepress_exception_handler(request: Request, exc: ImagePressException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.__class__.__name__,
            "message": exc.message,
            "details": exc.details
        }
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "InvalidInputError",
            "message": "Invalid request",
            "details": jsonable_encoder(exc.errors())
        }
    )

app.include_router(api_router, prefix=settings.API_V1_PREFIX)

@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.VERSION,
        "description": settings.DESCRIPTION
    }
