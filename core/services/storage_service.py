# =============================================================================
# core/services/storage_service.py - Supabase Storage Operations
# =============================================================================
# Handles image uploads to Supabase Storage buckets.
# Files are stored under <owner_id>/<uuid>.<ext> so owners never collide.
# =============================================================================

import logging
import mimetypes
import uuid
from typing import Any

from lib.supabase_client import SupabaseClient
from app.config import settings
from app.exceptions import FileTooLargeError, InvalidFileTypeError, StorageUploadError

logger = logging.getLogger(__name__)

# Storage bucket for vendor logos
VENDOR_LOGO_BUCKET = "vendor-logos"

EXTENSION_FOR_TYPE = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


def file_extension(filename: str | None, content_type: str) -> str:
    """Extension from the content type, falling back to the filename."""
    if content_type in EXTENSION_FOR_TYPE:
        return EXTENSION_FOR_TYPE[content_type]
    if filename and "." in filename:
        return filename.rsplit(".", 1)[1].lower()
    guessed = mimetypes.guess_extension(content_type or "")
    return guessed.lstrip(".") if guessed else "bin"


class StorageService:
    """
    Service for Supabase Storage operations.
    """

    @staticmethod
    def validate_image(content_type: str | None, size: int) -> str:
        """
        Check type and size against the upload limits.

        Returns:
            The normalised content type

        Raises:
            InvalidFileTypeError: If the type isn't an allowed image type
            FileTooLargeError: If the file is over MAX_UPLOAD_SIZE_MB
        """
        allowed = settings.allowed_image_types_list
        content_type = (content_type or "").split(";")[0].strip().lower()
        if content_type not in allowed:
            raise InvalidFileTypeError(content_type or "unknown", allowed)
        if size > settings.max_upload_size_bytes:
            raise FileTooLargeError(size / (1024 * 1024), settings.MAX_UPLOAD_SIZE_MB)
        return content_type

    @staticmethod
    def upload_image(
        bucket: str,
        owner_id: str,
        filename: str | None,
        content: bytes,
        content_type: str | None,
    ) -> dict[str, Any]:
        """
        Validate and upload an image.

        Returns:
            {"path": storage path, "public_url": URL}

        Raises:
            InvalidFileTypeError / FileTooLargeError: If validation fails
            StorageUploadError: If upload fails
        """
        content_type = StorageService.validate_image(content_type, len(content))
        path = f"{owner_id}/{uuid.uuid4()}.{file_extension(filename, content_type)}"

        client = SupabaseClient.get_client()
        try:
            client.storage.from_(bucket).upload(
                path=path,
                file=content,
                file_options={"content-type": content_type, "upsert": "true"}
            )
            logger.info(f"Uploaded file to storage: {bucket}/{path}")
        except Exception as e:
            logger.error(f"Storage upload failed: {e}")
            raise StorageUploadError(str(e))

        return {"path": path, "public_url": StorageService.get_public_url(bucket, path)}

    @staticmethod
    def get_public_url(bucket: str, storage_path: str) -> str:
        """Public URL for a storage file."""
        client = SupabaseClient.get_client()
        return client.storage.from_(bucket).get_public_url(storage_path)

    @staticmethod
    def delete_file(bucket: str, storage_path: str) -> bool:
        """
        Delete a file from storage.

        Returns:
            True if deleted successfully
        """
        client = SupabaseClient.get_client()

        try:
            client.storage.from_(bucket).remove([storage_path])
            logger.info(f"Deleted file from storage: {bucket}/{storage_path}")
            return True

        except Exception as e:
            logger.error(f"Failed to delete file: {e}")
            return False
