# student_registry/core/storage.py

import mimetypes
import uuid
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from loguru import logger
from supabase import create_client, Client

from student_registry.core.config import settings
from student_registry.core.exceptions import UpstreamFailure, ValidationError

_client: Optional[Client] = None


def get_storage_client() -> Optional[Client]:
    """Lazily builds the Supabase client; None when credentials are missing."""
    global _client

    if _client is None and settings.SUPABASE_URL and settings.SUPABASE_KEY:
        _client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)

    return _client


def _extension_for(content_type: Optional[str]) -> str:
    if not content_type:
        return ""
    ext = mimetypes.guess_extension(content_type) or ""
    return ".jpg" if ext == ".jpe" else ext


async def upload_profile_image(
    content: Optional[bytes],
    content_type: Optional[str] = None,
    folder: Optional[str] = None,
) -> str:
    """
    Uploads an image to Supabase Storage and returns its public URL.
    - Rejects empty payloads and non-image MIME types.
    - Ignores the original filename (UUID name instead).
    """
    if not content:
        raise ValidationError("Please upload an image")

    if content_type and not content_type.startswith("image/"):
        raise ValidationError("Only image files are allowed")

    if len(content) > settings.MAX_IMAGE_SIZE:
        raise ValidationError(
            f"Image too large. Maximum size is {settings.MAX_IMAGE_SIZE // (1024 * 1024)}MB."
        )

    client = get_storage_client()
    if not client:
        logger.error("Supabase credentials missing; cannot upload image.")
        raise UpstreamFailure("Image storage service unavailable")

    file_name = f"{uuid.uuid4()}{_extension_for(content_type)}"
    file_path = f"{folder}/{file_name}" if folder else file_name

    bucket = client.storage.from_(settings.SUPABASE_BUCKET)
    try:
        # supabase-py is blocking; keep it off the event loop
        await run_in_threadpool(
            bucket.upload,
            path=file_path,
            file=content,
            file_options={"content-type": content_type or "application/octet-stream", "upsert": "true"},
        )
        url = bucket.get_public_url(file_path)
    except Exception as e:
        logger.error(f"Storage upload error: {e}")
        raise UpstreamFailure("Failed to upload image") from e

    logger.info(f"Uploaded profile image {file_path}")
    return url.rstrip("?")
