import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from typing import AsyncGenerator, Dict, List, Set, Tuple

import pytest
import pytest_asyncio
import httpx
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from models import Base
from coordinator import DocumentCoordinator
from object_store import ObjectStoreError
from routers.files import get_coordinator

PDF_BYTES = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n"


class InMemoryObjectStore:
    """Object store double. Operation names listed in ``fail_on`` raise ObjectStoreError."""

    def __init__(self):
        self.buckets: Dict[str, Dict[str, Tuple[bytes, str]]] = {}
        self.fail_on: Set[str] = set()
        self.calls: List[str] = []

    def _record(self, operation: str):
        self.calls.append(operation)
        if operation in self.fail_on:
            raise ObjectStoreError(f"{operation} failed: simulated outage")

    def objects(self, bucket: str = "pdfs") -> Dict[str, Tuple[bytes, str]]:
        return self.buckets.get(bucket, {})

    async def put_object(self, bucket, key, data, size, content_type):
        self._record("put_object")
        if bucket not in self.buckets:
            raise ObjectStoreError(f"NoSuchBucket: {bucket}")
        self.buckets[bucket][key] = (bytes(data[:size]), content_type)

    async def get_object(self, bucket, key):
        self._record("get_object")
        try:
            return self.buckets[bucket][key][0]
        except KeyError:
            raise ObjectStoreError(f"NoSuchKey: {bucket}/{key}")

    async def remove_object(self, bucket, key):
        self._record("remove_object")
        self.buckets.get(bucket, {}).pop(key, None)

    async def bucket_exists(self, bucket):
        self._record("bucket_exists")
        return bucket in self.buckets

    async def make_bucket(self, bucket, region="us-east-1"):
        self._record("make_bucket")
        self.buckets.setdefault(bucket, {})


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()

@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_engine, class_=AsyncSession
    )
    async with TestingSessionLocal() as session:
        yield session
        await session.rollback()

@pytest.fixture
def pdf_bytes() -> bytes:
    return PDF_BYTES

@pytest.fixture(scope="function")
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()

@pytest_asyncio.fixture(scope="function")
async def coordinator(test_engine, object_store) -> DocumentCoordinator:
    document_coordinator = DocumentCoordinator(
        test_engine,
        object_store,
        bucket_name="pdfs",
        locator_scheme="minio",
        blob_key_suffix=".pdf",
        timeout=5.0,
    )
    await document_coordinator.initialize()
    object_store.calls.clear()
    return document_coordinator

@pytest_asyncio.fixture(scope="function")
async def async_client(coordinator: DocumentCoordinator) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_coordinator] = lambda: coordinator

    transport = httpx.ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testdocs") as client:
        yield client

    app.dependency_overrides.clear()
