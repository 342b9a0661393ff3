from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.core.logger import logger
from app.middleware.log_middleware import LogMiddleware

@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        from app.db.session import init_db
        await init_db()
        logger.info("Database tables ensured")
    yield
    if settings.RATE_LIMIT_BACKEND == "redis":
        from app.core.redis import redis_client
        await redis_client.close()

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LogMiddleware)

register_exception_handlers(app)

@app.get("/")
async def root():
    return {"success": True, "message": f"Welcome to {settings.PROJECT_NAME} API"}

from app.api.api import api_router
app.include_router(api_router, prefix=settings.API_V1_STR)
