"""
Products API router.

Routes defined at root level:
- GET / - List products with their categories (paginated)
- GET /form - Category choices and, with ?product_id=, the product to edit
- GET /{product_id} - Get one product
- POST / - Create or update a product, with an optional image (multipart)
- DELETE /{product_id} - Delete a product and its image

These routes are mounted at /products in the main app.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi_pagination import Page, paginate

from shop.api.dependencies import get_catalog_admin_use_case
from shop.api.errors import to_http_exception
from shop.domain import DeleteResult, Product, ProductVM
from shop.usecase import CatalogAdminUseCase

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=Page[Product])
async def list_products(
    use_case: CatalogAdminUseCase = Depends(get_catalog_admin_use_case),
) -> Page[Product]:
    """Get a paginated list of products."""
    logger.info("Products requested")
    try:
        products = await use_case.list_products()
    except Exception as e:
        raise to_http_exception(e, "retrieve products") from e
    logger.info(
        "Products retrieved successfully", extra={"count": len(products)}
    )
    return paginate(products)  # type: ignore[no-any-return]


@router.get("/form", response_model=ProductVM)
async def get_product_form(
    product_id: Optional[int] = None,
    use_case: CatalogAdminUseCase = Depends(get_catalog_admin_use_case),
) -> ProductVM:
    try:
        return await use_case.get_product_form(product_id)
    except Exception as e:
        raise to_http_exception(e, "load product form") from e


@router.get("/{product_id}", response_model=Product)
async def get_product(
    product_id: int,
    use_case: CatalogAdminUseCase = Depends(get_catalog_admin_use_case),
) -> Product:
    try:
        return await use_case.get_product(product_id)
    except Exception as e:
        raise to_http_exception(e, "retrieve product") from e


@router.post("", response_model=Product)
async def upsert_product(
    product_json: str = Form(...),
    file: Optional[UploadFile] = File(None),
    use_case: CatalogAdminUseCase = Depends(get_catalog_admin_use_case),
) -> Product:
    """
    Create a product (id 0 or omitted) or update an existing one.

    The product is sent as JSON in the ``product_json`` form field so it can
    travel with an image in the same multipart request.
    """
    try:
        data = json.loads(product_json)
    except json.JSONDecodeError as e:
        logger.warning(
            "Product payload is not valid JSON", extra={"error": str(e)}
        )
        raise HTTPException(
            status_code=400, detail="product_json must be valid JSON"
        ) from e
    if not isinstance(data, dict):
        raise HTTPException(
            status_code=400, detail="product_json must be a JSON object"
        )

    image = None
    if file is not None and file.filename:
        content = await file.read()
        image = {
            "filename": file.filename,
            "content_type": file.content_type or "application/octet-stream",
            "data": content,
        }
        logger.info(
            "Product image received",
            extra={
                "upload_filename": file.filename,
                "content_type": file.content_type,
                "size_bytes": len(content),
            },
        )

    logger.info(
        "Product save requested",
        extra={"product_id": data.get("id", 0), "has_image": image is not None},
    )
    try:
        return await use_case.upsert_product(data, image)
    except Exception as e:
        raise to_http_exception(e, "save product") from e


@router.delete("/{product_id}", response_model=DeleteResult)
async def delete_product(
    product_id: int,
    use_case: CatalogAdminUseCase = Depends(get_catalog_admin_use_case),
) -> DeleteResult:
    logger.info("Product deletion requested", extra={"product_id": product_id})
    try:
        return await use_case.delete_product(product_id)
    except Exception as e:
        raise to_http_exception(e, "delete product") from e
