from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from config import settings
from coordinator import DocumentCoordinator
from database import create_engine
from object_store import S3ObjectStore
from routers import files as files_router
from logging_config import get_logger

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Document Service starting up...")
    engine = create_engine(settings.DATABASE_URL)
    object_store = S3ObjectStore(
        endpoint_url=settings.MINIO_URL,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        region=settings.MINIO_REGION,
        max_pool_connections=settings.MINIO_MAX_POOL_CONNECTIONS,
    )
    try:
        async with object_store:
            coordinator = DocumentCoordinator(
                engine,
                object_store,
                bucket_name=settings.MINIO_BUCKET_NAME,
                region=settings.MINIO_REGION,
                locator_scheme=settings.STORAGE_LOCATOR_SCHEME,
                blob_key_suffix=settings.BLOB_KEY_SUFFIX,
                timeout=settings.BACKEND_TIMEOUT_SECONDS,
            )
            await coordinator.initialize()
            app.state.coordinator = coordinator
            logger.info(f"Object store configured at: {settings.MINIO_URL}, bucket: {settings.MINIO_BUCKET_NAME}")
            yield
            logger.info("Document Service shutting down...")
    finally:
        await engine.dispose()

app = FastAPI(
    title="Document Service",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(files_router.router, prefix="/api/v1")

@app.get("/health", tags=["Health"])
async def health():
    return {"status": "UP"}

@app.get("/ping", tags=["Health"])
async def ping():
    return {"ping": "pong! from Document Service"}

@app.get("/")
async def read_root():
    return {"message": "Welcome to the Document Service API"}

if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Document Service on {settings.DOCUMENT_SERVICE_HOST}:{settings.DOCUMENT_SERVICE_PORT}")
    uvicorn.run("main:app", host=settings.DOCUMENT_SERVICE_HOST, port=settings.DOCUMENT_SERVICE_PORT)
