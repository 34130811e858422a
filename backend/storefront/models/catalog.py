from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, cents_to_str


class Category(db.Model):
    """
    Product category.

    MULTI-TENANT: org_id NULL means a global category. Titles are unique
    within one org scope; the service checks the NULL scope explicitly
    because SQL treats NULLs as distinct in unique constraints.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("org_id", "title", name="uq_categories_org_title"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True, index=True)
    title = db.Column(db.String(120), nullable=False)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "title": self.title,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Sellable item template.

    SKU is unique within the owning org scope (NULL scope = global catalog).
    Authoritative price storage is in cents; size attributes adjust it.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("org_id", "sku", name="uq_products_org_sku"),
        db.Index("ix_products_org_active", "org_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    sub_category = db.Column(db.String(120), nullable=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category")

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "category_id": self.category_id,
            "sub_category": self.sub_category,
            "title": self.title,
            "description": self.description,
            "sku": self.sku,
            "price_cents": self.price_cents,
            "price": cents_to_str(self.price_cents),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductImage(db.Model):
    __tablename__ = "product_images"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    url = db.Column(db.String(512), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "product_id": self.product_id, "url": self.url}


class ProductVariant(db.Model):
    """Color/SKU variant of a product. Size and price live in VariantSizeAttribute."""
    __tablename__ = "product_variants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    color = db.Column(db.String(64), nullable=True)
    sku = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "color": self.color,
            "sku": self.sku,
        }


class VariantImage(db.Model):
    __tablename__ = "variant_images"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)
    url = db.Column(db.String(512), nullable=False)
    view_type = db.Column(db.String(16), nullable=False, default="front")

    def to_dict(self) -> dict:
        return {"id": self.id, "variant_id": self.variant_id, "url": self.url, "type": self.view_type}


class VariantSizeAttribute(db.Model):
    """
    Size-level price/stock modifier.

    final price = product.price_cents + price_adjustment_cents
    """
    __tablename__ = "variant_size_attributes"
    __table_args__ = (
        db.UniqueConstraint("variant_id", "size", name="uq_variant_size"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)
    size = db.Column(db.String(16), nullable=False)
    price_adjustment_cents = db.Column(db.Integer, nullable=False, default=0)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    def final_price_cents(self, base_price_cents: int) -> int:
        return base_price_cents + (self.price_adjustment_cents or 0)

    def to_dict(self, base_price_cents: int | None = None) -> dict:
        data = {
            "id": self.id,
            "variant_id": self.variant_id,
            "size": self.size,
            "price_adjustment_cents": self.price_adjustment_cents,
            "stock_quantity": self.stock_quantity,
        }
        if base_price_cents is not None:
            data["final_price_cents"] = self.final_price_cents(base_price_cents)
        return data


class ProductGroup(db.Model):
    """Customer group inside an organization; products can be hidden per group."""
    __tablename__ = "product_groups"
    __table_args__ = (
        db.UniqueConstraint("org_id", "title", name="uq_product_groups_org_title"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    title = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "org_id": self.org_id, "title": self.title}


class GroupProductVisibility(db.Model):
    __tablename__ = "group_product_visibility"
    __table_args__ = (
        db.UniqueConstraint("group_id", "product_id", name="uq_group_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey("product_groups.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    is_visible = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {"group_id": self.group_id, "product_id": self.product_id, "is_visible": self.is_visible}
