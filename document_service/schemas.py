import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

class DocumentBase(BaseModel):
    file_name: str
    file_size: int
    content_type: str

class DocumentCreate(DocumentBase):
    id: uuid.UUID

class DocumentUpdate(DocumentBase):
    pass

class DocumentInDB(DocumentBase):
    id: uuid.UUID
    storage_locator: str
    uploaded_at: datetime

    model_config = ConfigDict(from_attributes=True)

class UploadResponse(BaseModel):
    upload_id: uuid.UUID = Field(serialization_alias="uploadId")

class FilePathResponse(BaseModel):
    file_path: str = Field(serialization_alias="filePath")

class MessageResponse(BaseModel):
    message: str
