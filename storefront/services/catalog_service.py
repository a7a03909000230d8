"""
storefront/services/catalog_service.py

Purpose: Catalog management (categories and products)

- Category create / rename / describe / delete with unique names and slugs
- Product create / update / delete
- Paged listings for the storefront and the admin panel
"""

from enum import Enum
from typing import List, Optional

from storefront.core.exceptions import ResourceNotFoundError, ValidationError
from storefront.core.logging import get_logger
from storefront.db.repositories import get_store
from storefront.models.catalog import DEFAULT_CATEGORY_DESCRIPTION, Category, Product, slugify
from storefront.models.page import Page

logger = get_logger(__name__)


class DeleteResult(str, Enum):
    DELETED = "DELETED"
    NOT_FOUND = "NOT_FOUND"
    HAS_PRODUCTS = "HAS_PRODUCTS"


# ==============================================
# CATEGORIES
# ==============================================

async def list_categories() -> List[Category]:
    """Every category, ordered by id. Shared by the catalog and product wizards."""
    return await get_store().categories.list_all()


async def get_category(category_id: int) -> Category:
    """
    Raises:
        ResourceNotFoundError: If the category does not exist
    """
    category = await get_store().categories.get(category_id)
    if not category:
        raise ResourceNotFoundError(
            f"Category #{category_id} not found", details={"category_id": category_id}
        )
    return category


async def get_category_by_slug(slug: str) -> Category:
    category = await get_store().categories.get_by_slug(slug)
    if not category:
        raise ResourceNotFoundError(f"Category '{slug}' not found", details={"slug": slug})
    return category


async def find_category(category_id: int) -> Optional[Category]:
    return await get_store().categories.get(category_id)


async def find_category_by_name(name: str) -> Optional[Category]:
    return await get_store().categories.get_by_name(name)


async def unique_slug(name: str, exclude_id: Optional[int] = None) -> str:
    """
    Derives a slug from ``name`` that no other category uses.

    Args:
        name: Category name
        exclude_id: Category being renamed (may keep its own slug)

    Returns:
        "shoes", or "shoes-2", "shoes-3"... on collision
    """
    categories = get_store().categories
    base = slugify(name)
    candidate = base
    suffix = 2
    while True:
        existing = await categories.get_by_slug(candidate)
        if existing is None or existing.id == exclude_id:
            return candidate
        candidate = f"{base}-{suffix}"
        suffix += 1


async def create_category(name: str, description: Optional[str] = None) -> Category:
    """
    Creates a category, or returns the existing one with the same name.

    Args:
        name: Category name (compared case-insensitively)
        description: Optional description; a placeholder is used when empty

    Returns:
        The new or existing category
    """
    name = name.strip()
    if not name:
        raise ValidationError("Category name can't be empty")

    existing = await find_category_by_name(name)
    if existing:
        logger.info(f"Category '{name}' already exists as #{existing.id}")
        return existing

    category = await get_store().categories.insert(Category(
        name=name,
        slug=await unique_slug(name),
        description=(description or "").strip() or DEFAULT_CATEGORY_DESCRIPTION,
    ))
    logger.info(f"✅ Category created: #{category.id} {category.name} ({category.slug})")
    return category


async def update_category(
    category_id: int,
    name: Optional[str] = None,
    description: Optional[str] = None
) -> Category:
    """
    Applies staged category edits. A new name regenerates the slug.

    Raises:
        ResourceNotFoundError: If the category is gone
        ValidationError: If another category already has the new name
    """
    category = await get_category(category_id)

    if name is not None and name.strip() and name.strip() != category.name:
        name = name.strip()
        owner = await find_category_by_name(name)
        if owner and owner.id != category_id:
            raise ValidationError(f"A category named {name} already exists")
        category.name = name
        category.slug = await unique_slug(name, exclude_id=category_id)

    if description is not None:
        category.description = description.strip() or DEFAULT_CATEGORY_DESCRIPTION

    await get_store().categories.save(category)
    logger.info(f"💾 Category #{category_id} saved ({category.slug})")
    return category


async def delete_category(category_id: int) -> DeleteResult:
    """
    Deletes a category unless it still holds products.

    Returns:
        DeleteResult describing the outcome
    """
    store = get_store()
    category = await store.categories.get(category_id)
    if not category:
        return DeleteResult.NOT_FOUND

    if await store.products.count_by_category(category_id) > 0:
        logger.info(f"Refusing to delete non-empty category #{category_id}")
        return DeleteResult.HAS_PRODUCTS

    await store.categories.delete(category_id)
    logger.info(f"🗑 Category #{category_id} deleted")
    return DeleteResult.DELETED


async def count_category_products(category_id: int) -> int:
    return await get_store().products.count_by_category(category_id)


# ==============================================
# PRODUCTS
# ==============================================

async def get_product(product_id: int) -> Product:
    """
    Raises:
        ResourceNotFoundError: If the product does not exist
    """
    product = await get_store().products.get(product_id)
    if not product:
        raise ResourceNotFoundError(
            f"Product #{product_id} not found", details={"product_id": product_id}
        )
    return product


async def create_product(product: Product) -> Product:
    """
    Persists a new product.

    Raises:
        ResourceNotFoundError: If its category was deleted meanwhile
    """
    if product.category_id is not None:
        await get_category(product.category_id)

    product = await get_store().products.insert(product)
    logger.info(f"✅ Product created: #{product.id} {product.name}")
    return product


PRODUCT_FIELDS = frozenset({"name", "description", "price", "stock", "image", "category_id"})


async def update_product(product_id: int, **changes) -> Product:
    """
    Applies staged product edits.

    Args:
        product_id: Product to change
        **changes: Subset of name, description, price, stock, image, category_id

    Only the edited fields are written. Stock reserved by checkouts while
    the admin was editing stays reserved unless stock itself was edited.

    Returns:
        Saved product

    Raises:
        ResourceNotFoundError: If the product or the new category is gone
    """
    unknown = set(changes) - PRODUCT_FIELDS
    if unknown:
        raise ValueError(f"Unknown product fields: {sorted(unknown)}")

    product = await get_product(product_id)
    if changes.get("category_id") is not None:
        await get_category(changes["category_id"])

    # Re-validate through the model so price/stock invariants hold
    validated = Product.model_validate({**product.model_dump(), **changes})
    fields = {name: getattr(validated, name) for name in changes}

    saved = await get_store().products.update(product_id, fields)
    if saved is None:
        raise ResourceNotFoundError(
            f"Product #{product_id} not found", details={"product_id": product_id}
        )
    logger.info(f"💾 Product #{product_id} saved: {sorted(changes)}")
    return saved


async def delete_product(product_id: int) -> Product:
    """
    Deletes a product and every cart line pointing at it.

    Raises:
        ResourceNotFoundError: If the product is already gone
    """
    store = get_store()
    product = await get_product(product_id)
    await store.products.delete(product_id)
    removed = await store.carts.delete_for_product(product_id)
    logger.info(f"🗑 Product #{product_id} deleted ({removed} cart line(s) dropped)")
    return product


async def list_products_page(page: int, size: int) -> Page[Product]:
    products = get_store().products
    total = await products.count()
    page = _clamp(page, total, size)
    items = await products.list_all(offset=page * size, limit=size)
    return Page(items=items, page=page, size=size, total=total)


async def list_category_products(category_id: int, page: int, size: int) -> Page[Product]:
    products = get_store().products
    total = await products.count_by_category(category_id)
    page = _clamp(page, total, size)
    items = await products.list_by_category(category_id, offset=page * size, limit=size)
    return Page(items=items, page=page, size=size, total=total)


def _clamp(page: int, total: int, size: int) -> int:
    last = max(0, (total - 1) // size)
    return min(max(page, 0), last)
