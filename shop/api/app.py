"""
FastAPI application for shop administration.

The API provides endpoints for:
- Category and product catalog management, including product images
- Order status workflow (processing, shipping, cancellation with refund)
- Health checks
"""

import logging
import os
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi_pagination import add_pagination

from shop.api.responses import HealthCheckResponse
from shop.api.routers import categories, orders, products

VERSION = "0.1.0"


def setup_logging() -> None:
    """Configure logging based on environment variables"""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    log_format = os.environ.get(
        "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        print(f"Invalid log level: {log_level}, defaulting to INFO")
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format=log_format,
        force=True,  # Override any existing configuration
    )


# Setup logging when module is imported
setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Shop Administration API",
    description="Catalog management and order workflow for the shop",
    version=VERSION,
)

# Add pagination support
_ = add_pagination(app)

app.include_router(categories.router, prefix="/categories", tags=["categories"])
app.include_router(products.router, prefix="/products", tags=["products"])
app.include_router(orders.router, prefix="/orders", tags=["orders"])


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint"""
    logger.debug("Health check requested")
    return HealthCheckResponse(
        status="ok",
        version=VERSION,
        timestamp=datetime.now(timezone.utc),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "shop.api.app:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "8000")),
        log_level="info",
    )
