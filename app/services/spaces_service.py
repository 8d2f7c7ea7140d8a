import logging
import time
import uuid
from functools import lru_cache
from pathlib import Path

import boto3

from app.config import settings
from app.utils.errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/jpg", "image/webp"}
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
MAX_IMAGE_BYTES = 2 * 1024 * 1024


@lru_cache(maxsize=1)
def get_client():
    session = boto3.session.Session()
    return session.client(
        "s3",
        region_name=settings.SPACES_REGION,
        endpoint_url=settings.SPACES_ENDPOINT,
        aws_access_key_id=settings.SPACES_KEY,
        aws_secret_access_key=settings.SPACES_SECRET,
    )


def _join_path(*segments: str) -> str:
    cleaned = [segment.strip("/") for segment in segments if segment and segment.strip("/")]
    return "/".join(cleaned)


def _build_key(folder: str, owner: str, filename: str | None) -> str:
    extension = Path(filename or "").suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        extension = ".jpg"
    name = f"{owner}_{int(time.time())}_{uuid.uuid4().hex[:8]}{extension}"
    return _join_path(settings.SPACES_BASE_PATH, folder, name)


def _upload_file(data: bytes, key: str, content_type: str | None = None) -> str:
    extra_args = {"ACL": "public-read"}
    if content_type:
        extra_args["ContentType"] = content_type

    get_client().put_object(
        Bucket=settings.SPACES_NAME,
        Key=key,
        Body=data,
        **extra_args
    )
    return f"{settings.SPACES_CDN_URL}/{key}"


def upload_image(data: bytes, filename: str | None, folder: str, owner: str, content_type: str | None = None) -> str:
    """Upload a profile/doctor image and return its public CDN URL."""
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError("Unsupported image type")
    if not data:
        raise ValidationError("Image file is empty")
    if len(data) > MAX_IMAGE_BYTES:
        raise ValidationError("Image must be 2MB or smaller")
    if not settings.SPACES_NAME or not settings.SPACES_CDN_URL:
        raise UpstreamError("Image hosting is not configured")

    key = _build_key(folder, owner, filename)
    try:
        url = _upload_file(data, key, content_type)
    except Exception as exc:
        logger.error("Image upload to %s failed: %s", key, exc)
        raise UpstreamError("Could not upload image") from exc
    logger.info("Uploaded image %s", key)
    return url
