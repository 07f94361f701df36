"""
Validation utilities for uploaded files.

Uploaded files arrive with a client-chosen name and a client-declared
content type. Neither is trusted: names are sanitized before they become
part of a storage path, and the declared type is checked against the
leading bytes of the content.
"""

import os
import re

IMAGE_SIGNATURES = {
    "image/jpeg": [b"\xff\xd8\xff"],
    "image/png": [b"\x89PNG\r\n\x1a\n"],
    "image/gif": [b"GIF87a", b"GIF89a"],
    "image/webp": [b"RIFF"],
}

EXECUTABLE_SIGNATURES = [
    b"MZ",  # Windows PE
    b"\x7fELF",  # Linux ELF
    b"\xca\xfe\xba\xbe",  # Java class file
    b"PK\x03\x04",  # ZIP
]


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename for safe storage.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename safe for storage
    """
    # Remove path components, including Windows style ones
    sanitized = os.path.basename(filename.strip().replace("\\", "/"))

    sanitized = re.sub(r'[<>:"/\\|?*\s]', "_", sanitized)

    # Remove control characters
    sanitized = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", sanitized)

    sanitized = sanitized.lstrip(".")

    if len(sanitized) > 200:
        name, ext = os.path.splitext(sanitized)
        sanitized = name[: 200 - len(ext)] + ext

    if not sanitized:
        sanitized = "unnamed_file"

    return sanitized


def validate_image_upload(
    data: bytes, declared_content_type: str, filename: str
) -> None:
    """
    Validate that an upload really is an image of the declared type.

    Args:
        data: File content bytes
        declared_content_type: Content type declared by client
        filename: Original filename

    Raises:
        ValueError: If the content does not match the declared type
    """
    for sig in EXECUTABLE_SIGNATURES:
        if data.startswith(sig):
            raise ValueError(
                f"File '{filename}' appears to be executable but declared "
                f"as {declared_content_type}"
            )

    signatures = IMAGE_SIGNATURES.get(declared_content_type)
    if signatures is None:
        raise ValueError(
            f"Content type '{declared_content_type}' is not an allowed image "
            "type"
        )
    if not any(data.startswith(sig) for sig in signatures):
        raise ValueError(
            f"File '{filename}' content does not match declared type "
            f"{declared_content_type}"
        )


__all__ = [
    "sanitize_filename",
    "validate_image_upload",
]
