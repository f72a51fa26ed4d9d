import uuid as py_uuid
from sqlalchemy import delete, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

import models, schemas

async def get_document_by_id(db: AsyncSession, document_id: py_uuid.UUID) -> Optional[models.Document]:
    result = await db.execute(select(models.Document).filter(models.Document.id == document_id))
    return result.scalars().first()

async def get_storage_locator(db: AsyncSession, document_id: py_uuid.UUID) -> Optional[str]:
    result = await db.execute(select(models.Document.storage_locator).filter(models.Document.id == document_id))
    return result.scalars().first()

async def create_document(db: AsyncSession, document: schemas.DocumentCreate, storage_locator: str) -> models.Document:
    db_document = models.Document(
        id=document.id,
        storage_locator=storage_locator,
        file_name=document.file_name,
        file_size=document.file_size,
        content_type=document.content_type,
        uploaded_at=models.utcnow()
    )
    db.add(db_document)
    await db.commit()
    await db.refresh(db_document)
    return db_document

async def update_document(db: AsyncSession, document_id: py_uuid.UUID, changes: schemas.DocumentUpdate) -> bool:
    result = await db.execute(
        update(models.Document)
        .where(models.Document.id == document_id)
        .values(**changes.model_dump(), uploaded_at=models.utcnow())
    )
    await db.commit()
    return result.rowcount > 0

async def delete_document(db: AsyncSession, document_id: py_uuid.UUID) -> Optional[str]:
    result = await db.execute(
        delete(models.Document)
        .where(models.Document.id == document_id)
        .returning(models.Document.storage_locator)
    )
    storage_locator = result.scalar_one_or_none()
    await db.commit()
    return storage_locator
