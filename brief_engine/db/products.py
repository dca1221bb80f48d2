"""Database operations for the product catalog."""

from typing import Any

from postgrest.exceptions import APIError

from brief_engine.core.errors import NotFoundError, ValidationError
from brief_engine.core.logging import get_logger
from brief_engine.core.schemas_brief import Product, ProductCreate
from brief_engine.db.supabase_client import execute, get_supabase

logger = get_logger(__name__)

UNIQUE_VIOLATION = "23505"


def list_products() -> list[Product]:
    """List active products ordered by brand, then name."""
    supabase = get_supabase()

    try:
        response = execute(
            supabase.table("products")
            .select("*")
            .eq("is_active", True)
            .order("brand")
            .order("name")
        )
        return [Product(**row) for row in response.data or []]

    except Exception as e:
        logger.error(f"Failed to list products: {e}")
        raise


def get_product(product_id: str) -> Product:
    """
    Get a single product.

    Raises:
        NotFoundError: If the product does not exist
    """
    supabase = get_supabase()
    response = execute(supabase.table("products").select("*").eq("id", str(product_id)).limit(1))
    if not response.data:
        raise NotFoundError(
            f"Product {product_id} not found", entity="product", entity_id=str(product_id)
        )
    return Product(**response.data[0])


def group_products_by_brand() -> dict[str, list[Product]]:
    grouped: dict[str, list[Product]] = {}
    for product in list_products():
        grouped.setdefault(product.brand, []).append(product)
    return grouped


def list_brands() -> list[str]:
    """Unique brands, in catalog order."""
    return list(dict.fromkeys(p.brand for p in list_products()))


def product_name_exists(name: str) -> bool:
    """Case-insensitive check for an existing product name."""
    supabase = get_supabase()
    response = execute(supabase.table("products").select("id").ilike("name", name).limit(1))
    return bool(response.data)


def create_product(product: ProductCreate) -> Product:
    """
    Add a product to the catalog.

    Raises:
        ValidationError: If a product with this name already exists
    """
    supabase = get_supabase()
    data: dict[str, Any] = product.model_dump()

    try:
        response = execute(supabase.table("products").insert(data))
    except APIError as e:
        if e.code == UNIQUE_VIOLATION:
            raise ValidationError("Product already exists") from e
        logger.error(f"Failed to create product {product.name}: {e}")
        raise

    if not response.data:
        raise ValueError("No data returned from insert")

    created = Product(**response.data[0])
    logger.info(f"Created product {created.name}", extra={"brand": created.brand})
    return created
