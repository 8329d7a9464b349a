"""
Object store for diagnostic sample images.

Images go to Cloudinary when it is configured. Otherwise a local placeholder
locator is returned so submissions still work in development. Callers treat
the returned locator as opaque.
"""
import logging
import os
import uuid

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from ..config import settings
from ..exceptions import ServerErrorException

# Set up logger for this module
logger = logging.getLogger(__name__)

_configured = False


def _ensure_configured() -> None:
    global _configured
    if not _configured:
        cloudinary.config(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            secure=True,
        )
        _configured = True


def is_object_store_configured() -> bool:
    return settings.cloudinary_configured


def upload_diagnostic_image(data: bytes, filename: str, owner_id: str) -> str:
    """
    Store a sample image and return its locator.

    Args:
        data: Raw image bytes
        filename: Original file name, used for the extension only
        owner_id: Identity that uploaded the image

    Returns:
        str: Opaque locator of the stored image

    Raises:
        ServerErrorException: If the object store rejects the upload
    """
    extension = os.path.splitext(filename or "")[1].lstrip(".").lower() or "jpg"
    public_id = uuid.uuid4().hex

    if not is_object_store_configured():
        locator = f"{settings.frontend_url}/uploads/{owner_id}/{public_id}.{extension}"
        logger.info(f"Object store not configured - using placeholder locator {locator}")
        return locator

    _ensure_configured()
    try:
        result = cloudinary.uploader.upload(
            data,
            folder=f"diagnostics/{owner_id}",
            public_id=public_id,
            resource_type="image",
        )
    except cloudinary.exceptions.Error as e:
        logger.error(f"Cloudinary API error during diagnostic image upload: {str(e)}")
        raise ServerErrorException("Image upload failed")

    secure_url = result.get("secure_url")
    if not secure_url:
        logger.error("Cloudinary upload result did not contain a secure_url.")
        raise ServerErrorException("Image upload failed")

    logger.info(f"Successfully uploaded diagnostic image to Cloudinary. URL: {secure_url}")
    return secure_url
