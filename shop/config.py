"""
Runtime configuration read from environment variables.
"""

import logging
import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, field_validator

logger = logging.getLogger(__name__)


class ShopSettings(BaseModel):
    store_backend: Literal["memory", "minio"] = "memory"
    image_store: Literal["local", "minio"] = "local"
    image_dir: str = "media/ProductImage"
    image_url_prefix: str = "/ProductImage"
    payment_gateway: Literal["stripe", "memory"] = "memory"
    stripe_api_key: Optional[str] = None
    minio_endpoint: str = "localhost:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_secure: bool = False
    bucket_prefix: str = "shop"

    @field_validator("image_url_prefix")
    @classmethod
    def url_prefix_must_be_absolute(cls, v: str) -> str:
        v = "/" + v.strip().strip("/")
        return v

    @field_validator("stripe_api_key")
    @classmethod
    def blank_api_key_is_unset(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


# Settings field -> environment variable
ENVIRONMENT_VARIABLES = {
    "store_backend": "SHOP_STORE_BACKEND",
    "image_store": "SHOP_IMAGE_STORE",
    "image_dir": "SHOP_IMAGE_DIR",
    "image_url_prefix": "SHOP_IMAGE_URL_PREFIX",
    "payment_gateway": "SHOP_PAYMENT_GATEWAY",
    "stripe_api_key": "STRIPE_API_KEY",
    "minio_endpoint": "MINIO_ENDPOINT",
    "minio_access_key": "MINIO_ROOT_USER",
    "minio_secret_key": "MINIO_ROOT_PASSWORD",
    "minio_secure": "MINIO_SECURE",
    "bucket_prefix": "SHOP_BUCKET_PREFIX",
}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> ShopSettings:
    """Build ShopSettings from ``environ`` (defaults to os.environ).

    Unset variables fall back to the field defaults. Invalid values raise
    pydantic.ValidationError.
    """
    if environ is None:
        environ = os.environ
    values = {
        field: environ[variable]
        for field, variable in ENVIRONMENT_VARIABLES.items()
        if variable in environ
    }
    for field in ("store_backend", "image_store", "payment_gateway"):
        if field in values:
            values[field] = values[field].strip().lower()
    settings = ShopSettings.model_validate(values)
    logger.debug(
        "Settings loaded",
        extra={
            "store_backend": settings.store_backend,
            "image_store": settings.image_store,
            "payment_gateway": settings.payment_gateway,
        },
    )
    return settings
