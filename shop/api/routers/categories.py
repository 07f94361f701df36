"""
Categories API router.

Routes defined at root level:
- GET / - List categories (paginated)
- GET /{category_id} - Get one category
- POST / - Create or update a category
- DELETE /{category_id} - Delete a category

These routes are mounted at /categories in the main app.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi_pagination import Page, paginate

from shop.api.dependencies import get_catalog_admin_use_case
from shop.api.errors import to_http_exception
from shop.api.requests import UpsertCategoryRequest
from shop.domain import Category, DeleteResult
from shop.usecase import CatalogAdminUseCase

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=Page[Category])
async def list_categories(
    use_case: CatalogAdminUseCase = Depends(get_catalog_admin_use_case),
) -> Page[Category]:
    """Get a paginated list of categories."""
    logger.info("Categories requested")
    try:
        categories = await use_case.list_categories()
    except Exception as e:
        raise to_http_exception(e, "retrieve categories") from e
    logger.info(
        "Categories retrieved successfully",
        extra={"count": len(categories)},
    )
    return paginate(categories)  # type: ignore[no-any-return]


@router.get("/{category_id}", response_model=Category)
async def get_category(
    category_id: int,
    use_case: CatalogAdminUseCase = Depends(get_catalog_admin_use_case),
) -> Category:
    try:
        return await use_case.get_category(category_id)
    except Exception as e:
        raise to_http_exception(e, "retrieve category") from e


@router.post("", response_model=Category)
async def upsert_category(
    request: UpsertCategoryRequest,
    use_case: CatalogAdminUseCase = Depends(get_catalog_admin_use_case),
) -> Category:
    """
    Create a category (id 0 or omitted) or update an existing one.

    Returns:
        Category: The stored category with its assigned id
    """
    logger.info(
        "Category save requested",
        extra={"category_id": request.id, "category_name": request.name},
    )
    try:
        return await use_case.upsert_category(request.to_domain_data())
    except Exception as e:
        raise to_http_exception(e, "save category") from e


@router.delete("/{category_id}", response_model=DeleteResult)
async def delete_category(
    category_id: int,
    use_case: CatalogAdminUseCase = Depends(get_catalog_admin_use_case),
) -> DeleteResult:
    logger.info("Category deletion requested", extra={"category_id": category_id})
    try:
        await use_case.delete_category(category_id)
    except Exception as e:
        raise to_http_exception(e, "delete category") from e
    return DeleteResult(success=True, message="Delete Successful")
