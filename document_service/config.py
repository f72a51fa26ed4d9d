from pydantic import Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from typing import Any, List, Optional

env_path = Path(__file__).parent / ".env"

class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://myuser:mypassword@db:5432/filedb"
    DOCUMENT_SERVICE_HOST: str = "0.0.0.0"
    DOCUMENT_SERVICE_PORT: int = 3000

    MINIO_ENDPOINT: str = "minio"
    MINIO_PORT: int = 9000
    MINIO_USE_SSL: bool = False
    MINIO_URL: Optional[str] = Field(None, validate_default=True)
    MINIO_ACCESS_KEY: str = "minioadmin"
    MINIO_SECRET_KEY: str = "minioadmin"
    MINIO_BUCKET_NAME: str = "pdfs"
    # S3 requires a region even when MinIO ignores it
    MINIO_REGION: str = "us-east-1"
    MINIO_MAX_POOL_CONNECTIONS: int = 10

    STORAGE_LOCATOR_SCHEME: str = "minio"
    BLOB_KEY_SUFFIX: str = ".pdf"
    BACKEND_TIMEOUT_SECONDS: float = 30.0
    ALLOWED_CONTENT_TYPES: List[str] = ["application/pdf"]
    CORS_ALLOW_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=env_path, extra='ignore')

    @field_validator('MINIO_URL', mode='before')
    @classmethod
    def assemble_minio_url(cls, v: Optional[str], info: ValidationInfo) -> Any:
        if isinstance(v, str) and v:
            return v

        scheme = "https" if info.data.get('MINIO_USE_SSL') else "http"
        host = info.data.get('MINIO_ENDPOINT', "minio")
        port = info.data.get('MINIO_PORT', 9000)
        return f"{scheme}://{host}:{port}"

settings = Settings()
