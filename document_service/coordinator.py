import asyncio
import uuid
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

import crud, models, schemas
from database import create_session_factory
from errors import (
    InitializationFailure,
    MetadataReadFailure,
    MetadataWriteFailure,
    StorageWriteFailure,
)
from locator import InvalidStorageLocator, StorageLocator, new_document_id
from logging_config import get_logger
from object_store import DEFAULT_REGION, ObjectStore, ObjectStoreError
from saga import Saga, SagaStep

logger = get_logger(__name__)

STORAGE_ERRORS = (ObjectStoreError,)
METADATA_ERRORS = (SQLAlchemyError, OSError)


class DocumentCoordinator:
    """Keeps document blobs and their metadata rows consistent.

    Uploads write the blob before the row and delete the blob again if the row
    cannot be written. Deletes remove the row before the blob, so a document
    stops being resolvable as soon as its row is gone. The coordinator holds no
    per-request state; both backends are shared and injected.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        object_store: ObjectStore,
        bucket_name: str,
        region: str = DEFAULT_REGION,
        locator_scheme: str = "minio",
        blob_key_suffix: str = ".pdf",
        timeout: Optional[float] = None,
    ):
        self.engine = engine
        self.object_store = object_store
        self.bucket_name = bucket_name
        self.region = region
        self.locator_scheme = locator_scheme
        self.blob_key_suffix = blob_key_suffix
        self.timeout = timeout
        self.session_factory = create_session_factory(engine)

    def locator_for(self, document_id: uuid.UUID) -> StorageLocator:
        return StorageLocator.for_document(self.locator_scheme, self.bucket_name, document_id, self.blob_key_suffix)

    async def initialize(self) -> None:
        try:
            await asyncio.wait_for(self._init_db(), timeout=self.timeout)
        except METADATA_ERRORS + (asyncio.TimeoutError,) as e:
            logger.error(f"Failed to initialize database: {e!r}")
            raise InitializationFailure("Failed to initialize metadata store") from None

        try:
            await asyncio.wait_for(self._init_bucket(), timeout=self.timeout)
        except (ObjectStoreError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to initialize object store bucket '{self.bucket_name}': {e!r}")
            raise InitializationFailure("Failed to initialize object store") from None

    async def _init_db(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(models.Base.metadata.create_all)
        logger.info("Database schema initialized successfully.")

    async def _init_bucket(self) -> None:
        if await self.object_store.bucket_exists(self.bucket_name):
            logger.info(f"Bucket '{self.bucket_name}' already exists.")
            return
        await self.object_store.make_bucket(self.bucket_name, self.region)
        logger.info(f"Bucket '{self.bucket_name}' created successfully.")

    async def upload(self, data: bytes, file_name: str, size: int, content_type: str) -> uuid.UUID:
        document_id = new_document_id()
        locator = self.locator_for(document_id)
        document = schemas.DocumentCreate(
            id=document_id,
            file_name=file_name,
            file_size=size,
            content_type=content_type,
        )

        async def insert_row():
            async with self.session_factory() as db:
                await crud.create_document(db, document, storage_locator=str(locator))

        saga = Saga(
            f"upload {document_id}",
            [
                SagaStep(
                    name="store blob",
                    action=lambda: self.object_store.put_object(locator.bucket, locator.key, data, size, content_type),
                    compensation=lambda: self.object_store.remove_object(locator.bucket, locator.key),
                    failure=StorageWriteFailure,
                    errors=STORAGE_ERRORS,
                ),
                SagaStep(
                    name="insert metadata",
                    action=insert_row,
                    failure=MetadataWriteFailure,
                    errors=METADATA_ERRORS,
                ),
            ],
            timeout=self.timeout,
        )
        result = await saga.run()
        if not result.ok:
            if result.failed_step.failure is StorageWriteFailure:
                raise StorageWriteFailure("Failed to store file data", document_id)
            raise MetadataWriteFailure("Failed to save file metadata", document_id)

        logger.info(f"Uploaded '{file_name}' as {document_id} at {locator}")
        return document_id

    async def resolve(self, document_id: uuid.UUID) -> Optional[str]:
        try:
            async with self.session_factory() as db:
                storage_locator = await asyncio.wait_for(
                    crud.get_storage_locator(db, document_id), timeout=self.timeout
                )
        except METADATA_ERRORS + (asyncio.TimeoutError,) as e:
            logger.error(f"Error retrieving file path for {document_id}: {e!r}")
            raise MetadataReadFailure("Failed to read file metadata", document_id) from None

        if storage_locator is None:
            logger.info(f"No document found for {document_id}")
        return storage_locator

    async def describe(self, document_id: uuid.UUID) -> Optional[schemas.DocumentInDB]:
        try:
            async with self.session_factory() as db:
                document = await asyncio.wait_for(crud.get_document_by_id(db, document_id), timeout=self.timeout)
        except METADATA_ERRORS + (asyncio.TimeoutError,) as e:
            logger.error(f"Error retrieving metadata for {document_id}: {e!r}")
            raise MetadataReadFailure("Failed to read file metadata", document_id) from None

        if document is None:
            return None
        return schemas.DocumentInDB.model_validate(document)

    async def replace(self, document_id: uuid.UUID, data: bytes, file_name: str, size: int, content_type: str) -> bool:
        if await self.resolve(document_id) is None:
            return False

        locator = self.locator_for(document_id)
        changes = schemas.DocumentUpdate(file_name=file_name, file_size=size, content_type=content_type)

        async def update_row():
            async with self.session_factory() as db:
                return await crud.update_document(db, document_id, changes)

        # No compensation on either step: once the blob is overwritten the old
        # bytes are gone, and a failed row update is left for the caller to retry.
        saga = Saga(
            f"replace {document_id}",
            [
                SagaStep(
                    name="overwrite blob",
                    action=lambda: self.object_store.put_object(locator.bucket, locator.key, data, size, content_type),
                    failure=StorageWriteFailure,
                    errors=STORAGE_ERRORS,
                ),
                SagaStep(
                    name="update metadata",
                    action=update_row,
                    failure=MetadataWriteFailure,
                    errors=METADATA_ERRORS,
                ),
            ],
            timeout=self.timeout,
        )
        result = await saga.run()
        if not result.ok:
            if result.failed_step.failure is StorageWriteFailure:
                raise StorageWriteFailure("Failed to store file data", document_id)
            logger.error(f"Blob for {document_id} was replaced but its metadata was not updated")
            raise MetadataWriteFailure("Failed to update file metadata", document_id)

        if not result.values["update metadata"]:
            logger.warning(f"Document {document_id} was deleted during replace. Removing orphaned blob.")
            await self._remove_blob(locator, document_id)
            return False

        logger.info(f"Replaced content of {document_id} with '{file_name}'")
        return True

    async def delete(self, document_id: uuid.UUID) -> bool:
        try:
            async with self.session_factory() as db:
                storage_locator = await asyncio.wait_for(crud.delete_document(db, document_id), timeout=self.timeout)
        except METADATA_ERRORS + (asyncio.TimeoutError,) as e:
            logger.error(f"Error deleting metadata for {document_id}: {e!r}")
            raise MetadataWriteFailure("Failed to delete file metadata", document_id) from None

        if storage_locator is None:
            logger.info(f"No document to delete for {document_id}")
            return False

        try:
            locator = StorageLocator.parse(storage_locator)
        except InvalidStorageLocator:
            logger.error(f"Could not parse storage locator '{storage_locator}' of {document_id}. Blob left orphaned.")
            return True

        await self._remove_blob(locator, document_id)
        logger.info(f"Deleted document {document_id}")
        return True

    async def _remove_blob(self, locator: StorageLocator, document_id: uuid.UUID) -> None:
        try:
            await asyncio.wait_for(
                self.object_store.remove_object(locator.bucket, locator.key), timeout=self.timeout
            )
        except (ObjectStoreError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to remove blob {locator} of {document_id}, it is now orphaned: {e!r}")
