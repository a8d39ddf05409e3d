import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from blog_api.cache import cache
from blog_api.config import settings
from blog_api.exceptions import ServiceError
from blog_api.middleware import TimingMiddleware
from blog_api.routers import auth, categories, comments, files, likes, posts, tags, users
from blog_api.storage import LocalFileStorage

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging()
    LocalFileStorage(settings.STORAGE_ROOT).ensure_dirs()
    try:
        await cache.connect()
    except Exception as exc:
        # App works without Redis
        logger.warning("Cache unavailable: %s", exc)
    yield
    # Shutdown
    await cache.disconnect()

app = FastAPI(
    title="Blog API",
    description="Posts, categories, tags, comments and likes with public/private visibility",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed ids, empty names and bad query params are client errors (400).
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


# Routers
app.include_router(auth.router)
app.include_router(posts.router)
app.include_router(comments.router)
app.include_router(categories.router)
app.include_router(tags.router)
app.include_router(users.router)
app.include_router(likes.router)
app.include_router(files.router)

# Uploaded images (temp and per-post folders)
app.mount(
    settings.STATIC_URL,
    StaticFiles(directory=settings.STORAGE_ROOT, check_dir=False),
    name="static",
)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
