"""API endpoints for the product catalog."""

from fastapi import APIRouter

from brief_engine.api.errors import to_http_exception
from brief_engine.core.logging import get_logger
from brief_engine.core.schemas_brief import Product, ProductCreate
from brief_engine.db.products import (
    create_product,
    group_products_by_brand,
    list_products,
)

logger = get_logger(__name__)

router = APIRouter()


@router.get("/products", response_model=list[Product])
async def get_products() -> list[Product]:
    """Active catalog products ordered by brand then name."""
    try:
        return list_products()
    except Exception as e:
        raise to_http_exception(e, "list products") from e


@router.get("/products/by-brand", response_model=dict[str, list[Product]])
async def get_products_by_brand() -> dict[str, list[Product]]:
    try:
        return group_products_by_brand()
    except Exception as e:
        raise to_http_exception(e, "group products") from e


@router.post("/products", response_model=Product, status_code=201)
async def add_product(request: ProductCreate) -> Product:
    """
    Add a product to the catalog.

    Raises:
        HTTPException 400: If a product with this name already exists
    """
    try:
        logger.info(f"Creating product {request.name}", extra={"brand": request.brand})
        return create_product(request)
    except Exception as e:
        raise to_http_exception(e, "create product") from e
