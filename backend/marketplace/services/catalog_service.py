# Overview: Service-layer operations for the catalogue; brands, categories and products.

import re

from sqlalchemy import or_

from ..extensions import db
from ..errors import InvalidInputError, InvalidStateError, NotFoundError
from ..models import Brand, Category, Product, PurchaseItem
from ..models.catalog import PRICE_FIELDS
from ..money import ZERO, to_money
from .concurrency import commit_or_fail
from .stock_service import stock_status


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")


def _create_named(model, name: str, **fields):
    if not name or not name.strip():
        raise InvalidInputError("name is required")
    name = name.strip()
    slug = slugify(name)
    existing = db.session.query(model).filter(or_(model.name == name, model.slug == slug)).first()
    if existing:
        raise InvalidInputError(f"{model.__name__} '{name}' already exists")
    obj = model(name=name, slug=slug, **fields)
    db.session.add(obj)
    commit_or_fail(f"Failed to create {model.__name__.lower()}")
    return obj


def create_brand(name: str, logo_url: str | None = None) -> Brand:
    return _create_named(Brand, name, logo_url=logo_url)


def create_category(name: str) -> Category:
    return _create_named(Category, name)


def list_brands() -> list[Brand]:
    return db.session.query(Brand).order_by(Brand.name).all()


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name).all()


def _get_named(model, obj_id: int):
    obj = db.session.get(model, obj_id)
    if not obj:
        raise NotFoundError(f"{model.__name__} not found")
    return obj


def _update_named(model, obj_id: int, changes: dict):
    """Rename (slug follows the name) and toggle is_active. Names stay unique, case-insensitively."""
    obj = _get_named(model, obj_id)

    if "name" in changes:
        name = changes["name"]
        if not isinstance(name, str) or not name.strip():
            raise InvalidInputError("name cannot be empty")
        name = name.strip()
        slug = slugify(name)
        clash = (
            db.session.query(model.id)
            .filter(model.id != obj.id)
            .filter(or_(db.func.lower(model.name) == name.lower(), model.slug == slug))
            .first()
        )
        if clash:
            raise InvalidInputError(f"{model.__name__} '{name}' already exists")
        obj.name = name
        obj.slug = slug

    if "is_active" in changes:
        obj.is_active = bool(changes["is_active"])
    if "logo_url" in changes and hasattr(obj, "logo_url"):
        obj.logo_url = changes["logo_url"] or None

    commit_or_fail(f"Failed to update {model.__name__.lower()}")
    return obj


def _delete_named(model, obj_id: int, product_column) -> None:
    obj = _get_named(model, obj_id)
    in_use = db.session.query(Product.id).filter(product_column == obj.id).count()
    if in_use:
        raise InvalidStateError(f"{model.__name__} is used by {in_use} products")
    db.session.delete(obj)
    commit_or_fail(f"Failed to delete {model.__name__.lower()}")


def get_brand(brand_id: int) -> Brand:
    return _get_named(Brand, brand_id)


def update_brand(brand_id: int, changes: dict) -> Brand:
    return _update_named(Brand, brand_id, changes)


def delete_brand(brand_id: int) -> None:
    _delete_named(Brand, brand_id, Product.brand_id)


def get_category(category_id: int) -> Category:
    return _get_named(Category, category_id)


def update_category(category_id: int, changes: dict) -> Category:
    return _update_named(Category, category_id, changes)


def delete_category(category_id: int) -> None:
    _delete_named(Category, category_id, Product.category_id)


def _money_field(data: dict, key: str):
    value = data.get(key)
    if value is None:
        return ZERO
    try:
        amount = to_money(value, field=key)
    except ValueError as e:
        raise InvalidInputError(str(e))
    if amount < ZERO:
        raise InvalidInputError(f"{key} cannot be negative")
    return amount


def create_product(data: dict) -> Product:
    """
    Create a catalogue product.

    Stock starts at zero; it is only ever raised by purchase bills. When the
    product has a reseller price, it is pushed to resellers with auto-import.

    Raises:
        InvalidInputError: Missing sku, unknown brand/category, duplicate sku, bad prices
    """
    sku = (data.get("sku") or "").strip().upper()
    if not sku:
        raise InvalidInputError("sku is required")
    if db.session.query(Product.id).filter_by(sku=sku).first():
        raise InvalidInputError(f"SKU '{sku}' already exists")

    category_id = data.get("category_id")
    brand_id = data.get("brand_id")
    if not category_id or not db.session.get(Category, category_id):
        raise InvalidInputError("Valid category_id is required")
    if not brand_id or not db.session.get(Brand, brand_id):
        raise InvalidInputError("Valid brand_id is required")

    product = Product(
        sku=sku,
        name=data.get("name"),
        description=data.get("description"),
        category_id=category_id,
        brand_id=brand_id,
        mrp=_money_field(data, "mrp"),
        cost_price=_money_field(data, "cost_price"),
        is_featured=bool(data.get("is_featured", False)),
        is_new_arrival=bool(data.get("is_new_arrival", False)),
        stock_quantity=0,
        status=stock_status(0),
    )
    for field in PRICE_FIELDS:
        setattr(product, field, _money_field(data, field))

    db.session.add(product)
    commit_or_fail("Failed to create product")

    from .storefront_service import sync_new_product
    sync_new_product(product)
    return product


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


# cost_price, stock_quantity and status are derived from purchase bills
EDITABLE_PRODUCT_FIELDS = (
    "sku", "name", "description", "category_id", "brand_id",
    "mrp", *PRICE_FIELDS, "is_featured", "is_new_arrival",
)


def update_product(product_id: int, changes: dict) -> Product:
    """
    Partial update of a catalogue product.

    Keys outside EDITABLE_PRODUCT_FIELDS are ignored. When a channel price
    changes, auto-imported reseller listings are repriced.

    Raises:
        NotFoundError: Product does not exist
        InvalidInputError: Nothing to update, duplicate sku, unknown
            brand/category, bad prices
    """
    product = get_product(product_id)
    updates = {k: v for k, v in (changes or {}).items() if k in EDITABLE_PRODUCT_FIELDS}
    if not updates:
        raise InvalidInputError("No valid fields to update")

    values = {}
    if "sku" in updates:
        sku = str(updates["sku"] or "").strip().upper()
        if not sku:
            raise InvalidInputError("sku cannot be empty")
        taken = db.session.query(Product.id).filter(Product.sku == sku, Product.id != product.id).first()
        if taken:
            raise InvalidInputError(f"SKU '{sku}' already exists")
        values["sku"] = sku
    if "category_id" in updates:
        if not db.session.get(Category, updates["category_id"] or 0):
            raise InvalidInputError("Valid category_id is required")
        values["category_id"] = updates["category_id"]
    if "brand_id" in updates:
        if not db.session.get(Brand, updates["brand_id"] or 0):
            raise InvalidInputError("Valid brand_id is required")
        values["brand_id"] = updates["brand_id"]
    for field in ("mrp", *PRICE_FIELDS):
        if field in updates:
            values[field] = _money_field(updates, field)
    for field in ("is_featured", "is_new_arrival"):
        if field in updates:
            values[field] = bool(updates[field])
    for field in ("name", "description"):
        if field in updates:
            values[field] = updates[field]

    for field, value in values.items():
        setattr(product, field, value)
    commit_or_fail("Failed to update product")

    if any(field in updates for field in PRICE_FIELDS):
        from .storefront_service import sync_new_product
        sync_new_product(product)
    return product


def delete_product(product_id: int) -> None:
    """
    Delete a product and drop it from every reseller store.

    Products that appear on a purchase bill keep their history and cannot
    be deleted (InvalidStateError); delete or edit the bills first.
    """
    product = get_product(product_id)
    purchases = db.session.query(PurchaseItem.id).filter(PurchaseItem.product_id == product.id).count()
    if purchases:
        raise InvalidStateError(f"Product appears on {purchases} purchase bill lines")

    from .storefront_service import unlist_product
    unlist_product(product.id)
    db.session.delete(product)
    commit_or_fail("Failed to delete product")


def list_products(
    *,
    status: str | None = None,
    category_id: int | None = None,
    brand_id: int | None = None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Product], int]:
    query = db.session.query(Product)
    if status:
        query = query.filter(Product.status == status)
    if category_id:
        query = query.filter(Product.category_id == category_id)
    if brand_id:
        query = query.filter(Product.brand_id == brand_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Product.sku.ilike(term), Product.name.ilike(term)))

    total = query.count()
    products = query.order_by(Product.created_at.desc(), Product.id.desc()).offset(offset).limit(limit).all()
    return products, total
