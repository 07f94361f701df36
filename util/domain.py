"""
Domain models shared by the file storage repositories.
"""

from pydantic import BaseModel, field_validator

MAX_UPLOAD_BYTES = 5 * 1024 * 1024

ALLOWED_IMAGE_CONTENT_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
}


class FileUpload(BaseModel):
    """An uploaded file as received from a client."""

    filename: str
    content_type: str
    data: bytes

    @field_validator("filename")
    @classmethod
    def filename_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Filename must not be empty")
        return v

    @field_validator("content_type")
    @classmethod
    def content_type_must_be_image(cls, v: str) -> str:
        if v not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise ValueError(f"Content type '{v}' is not an allowed image type")
        return v

    @field_validator("data")
    @classmethod
    def data_must_fit_limits(cls, v: bytes) -> bytes:
        if not v:
            raise ValueError("File cannot be empty")
        if len(v) > MAX_UPLOAD_BYTES:
            raise ValueError(
                f"File exceeds the maximum size of {MAX_UPLOAD_BYTES} bytes"
            )
        return v
