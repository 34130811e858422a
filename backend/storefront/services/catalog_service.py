"""
CatalogStore: products, color variants, size attributes and images.

MULTI-TENANT: Every read applies AccessScope visibility first (own org +
global rows; SuperAdmin sees everything). Mutations require MANAGE_PRODUCTS
and ownership of the product's organization.

EDIT SEMANTICS (update_product):
- fields present in the patch overwrite; omitted fields are untouched
- variant entries with an id update in place, entries without one insert
- sizes are upserted by (variant, size)
- only the explicit deletion lists (deleted_variant_ids, deleted_image_refs,
  per-variant deleted_sizes) remove rows; absence never deletes
"""

from __future__ import annotations

import logging
from collections import defaultdict

from sqlalchemy import func, or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import (
    Category,
    Customization,
    CartItem,
    GroupProductVisibility,
    Product,
    ProductGroup,
    ProductImage,
    ProductVariant,
    VariantImage,
    VariantLogoPosition,
    VariantSizeAttribute,
)
from ..validation import (
    ModelValidationPolicy,
    coerce_bool,
    coerce_cents,
    coerce_int,
    coerce_id_list,
    enforce_rules_product,
    parse_json_list,
    parse_pagination,
    validate_payload,
)
from .access_service import (
    Caller,
    authorize,
    can_see,
    require_org_ownership,
    resolve_target_org,
    visible_filter,
)
from .collaborators import AssetStore, Upload, safe_delete_assets, upload_asset
from .concurrency import run_with_retry, transaction_scope
from .reporting import apply_report_scope, apply_timeframe, parse_report_org, parse_timeframe

logger = logging.getLogger(__name__)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"title", "description", "sku", "category_id", "sub_category", "price_cents", "is_active"},
    required_on_create={"title", "description", "sku", "category_id", "price_cents"},
)

VARIANT_IMAGE_TYPES = {"front", "back", "left", "right"}


def _parse_sizes(raw, field: str) -> list[dict]:
    sizes: list[dict] = []
    seen: set[str] = set()
    for i, entry in enumerate(parse_json_list(raw, field)):
        if not isinstance(entry, dict):
            raise ValidationError(f"{field}[{i}] must be an object")
        # "name" is the legacy key used by older clients
        size = str(entry.get("size") or entry.get("name") or "").strip()
        if not size:
            raise ValidationError(f"{field}[{i}].size is required")
        if len(size) > 16:
            raise ValidationError(f"{field}[{i}].size exceeds max length 16")
        if size in seen:
            raise ValidationError(f"Duplicate size {size!r} in {field}")
        seen.add(size)

        parsed = {"size": size}
        if entry.get("price_adjustment_cents") is not None:
            parsed["price_adjustment_cents"] = coerce_cents(
                entry["price_adjustment_cents"], f"{field}[{i}].price_adjustment_cents", allow_negative=True
            )
        if entry.get("stock_quantity") is not None:
            stock = coerce_int(entry["stock_quantity"], f"{field}[{i}].stock_quantity")
            if stock < 0:
                raise ValidationError(f"{field}[{i}].stock_quantity must be >= 0")
            parsed["stock_quantity"] = stock
        sizes.append(parsed)
    return sizes


def _parse_images(raw, field: str) -> list[tuple[str, str]]:
    """Accept ["url", ...] or [{"url": ..., "type": "back"}, ...]."""
    images = []
    for i, entry in enumerate(parse_json_list(raw, field)):
        if isinstance(entry, str):
            url, view_type = entry, "front"
        elif isinstance(entry, dict) and entry.get("url"):
            url, view_type = entry["url"], entry.get("type") or "front"
        else:
            raise ValidationError(f"{field}[{i}] must be a URL or an object with a url")
        if view_type not in VARIANT_IMAGE_TYPES:
            raise ValidationError(f"{field}[{i}].type must be one of {sorted(VARIANT_IMAGE_TYPES)}")
        images.append((str(url).strip(), view_type))
    return images


def _parse_variants(raw, *, allow_ids: bool) -> list[dict]:
    variants = []
    for i, entry in enumerate(parse_json_list(raw, "variants")):
        if not isinstance(entry, dict):
            raise ValidationError(f"variants[{i}] must be an object")

        variant: dict = {"index": i}
        if entry.get("id") is not None:
            if not allow_ids:
                raise ValidationError(f"variants[{i}].id is not allowed when creating a product")
            variant["id"] = coerce_int(entry["id"], f"variants[{i}].id")

        if entry.get("sku") not in (None, ""):
            sku = str(entry["sku"]).strip()
            if len(sku) > 64:
                raise ValidationError(f"variants[{i}].sku exceeds max length 64")
            variant["sku"] = sku
        elif "id" not in variant:
            raise ValidationError(f"variants[{i}].sku is required")

        if "color" in entry:
            variant["color"] = str(entry["color"]).strip() if entry["color"] else None

        variant["sizes"] = _parse_sizes(entry.get("sizes"), f"variants[{i}].sizes")
        variant["deleted_sizes"] = [
            str(s).strip() for s in parse_json_list(entry.get("deleted_sizes"), f"variants[{i}].deleted_sizes")
        ]
        variant["images"] = _parse_images(entry.get("images"), f"variants[{i}].images")
        variant["uploads"] = list(entry.get("uploads") or [])
        variants.append(variant)
    return variants


def _parse_group_visibility(raw) -> list[tuple[int, bool]]:
    links = []
    seen = set()
    for i, entry in enumerate(parse_json_list(raw, "group_visibility")):
        if not isinstance(entry, dict) or entry.get("group_id") is None:
            raise ValidationError(f"group_visibility[{i}].group_id is required")
        group_id = coerce_int(entry["group_id"], f"group_visibility[{i}].group_id")
        if group_id in seen:
            continue
        seen.add(group_id)
        is_visible = coerce_bool(entry["is_visible"]) if entry.get("is_visible") is not None else True
        links.append((group_id, is_visible))
    return links


class CatalogStore:
    """Owns Product, ProductVariant, VariantSizeAttribute and their images."""

    def __init__(self, session, *, assets: AssetStore | None = None, retry_attempts: int = 3,
                 retry_backoff: float = 0.1):
        self.session = session
        self.assets = assets
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    def _run(self, op):
        return run_with_retry(op, session=self.session, attempts=self.retry_attempts,
                              backoff_base=self.retry_backoff)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_products(self, filters: dict | None, caller: Caller) -> dict:
        """
        Visibility first, then optional title (substring) / sku / is_active /
        category_id filters. SuperAdmin may also filter by org_id.

        Returns {"items": [...], "count": n} plus pagination when page is given.
        """
        authorize(caller, "VIEW_CATALOG")
        filters = filters or {}

        query = self.session.query(Product).filter(visible_filter(Product.org_id, caller))

        if filters.get("title"):
            query = query.filter(Product.title.ilike(f"%{filters['title'].strip()}%"))
        if filters.get("sku"):
            query = query.filter(Product.sku == filters["sku"].strip())
        if filters.get("is_active") not in (None, ""):
            query = query.filter(Product.is_active == coerce_bool(filters["is_active"]))
        if filters.get("category_id") not in (None, ""):
            query = query.filter(Product.category_id == coerce_int(filters["category_id"], "category_id"))
        if caller.is_super_admin and filters.get("org_id") not in (None, ""):
            query = query.filter(Product.org_id == coerce_int(filters["org_id"], "org_id"))

        query = query.order_by(Product.created_at.desc(), Product.id.desc())

        page = filters.get("page")
        if page is None:
            products = query.all()
            items = self._hydrate(products)
            return {"items": items, "count": len(items)}

        page, per_page = parse_pagination(page, filters.get("per_page"))
        total = query.count()
        total_pages = (total + per_page - 1) // per_page if total > 0 else 1
        products = query.offset((page - 1) * per_page).limit(per_page).all()
        items = self._hydrate(products)
        return {
            "items": items,
            "count": len(items),
            "pagination": {
                "page": page,
                "per_page": per_page,
                "total": total,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        }

    def get_product(self, product_id: int, caller: Caller) -> dict:
        authorize(caller, "VIEW_CATALOG")
        product = self._get_visible(product_id, caller)
        return self._hydrate([product])[0]

    def _get_visible(self, product_id: int, caller: Caller) -> Product:
        product = self.session.get(Product, product_id)
        # Another org's private product is reported as missing, not forbidden.
        if product is None or not can_see(caller, product.org_id):
            raise NotFoundError("Product not found", {"product_id": product_id})
        return product

    def _hydrate(self, products: list[Product]) -> list[dict]:
        """
        Merge products with variants, images and size attributes in memory.

        Separate queries per child table keep images x sizes from multiplying
        rows the way a single JOIN would.
        """
        if not products:
            return []
        product_ids = [p.id for p in products]

        variants = (
            self.session.query(ProductVariant)
            .filter(ProductVariant.product_id.in_(product_ids))
            .order_by(ProductVariant.id.asc())
            .all()
        )
        product_images = (
            self.session.query(ProductImage)
            .filter(ProductImage.product_id.in_(product_ids))
            .order_by(ProductImage.id.asc())
            .all()
        )
        groups = (
            self.session.query(GroupProductVisibility)
            .filter(GroupProductVisibility.product_id.in_(product_ids))
            .all()
        )

        variant_ids = [v.id for v in variants]
        variant_images: list[VariantImage] = []
        sizes: list[VariantSizeAttribute] = []
        if variant_ids:
            variant_images = (
                self.session.query(VariantImage)
                .filter(VariantImage.variant_id.in_(variant_ids))
                .order_by(VariantImage.id.asc())
                .all()
            )
            sizes = (
                self.session.query(VariantSizeAttribute)
                .filter(VariantSizeAttribute.variant_id.in_(variant_ids))
                .order_by(VariantSizeAttribute.id.asc())
                .all()
            )

        images_by_product = defaultdict(list)
        for img in product_images:
            images_by_product[img.product_id].append(img.to_dict())
        groups_by_product = defaultdict(list)
        for link in groups:
            groups_by_product[link.product_id].append(link.to_dict())
        images_by_variant = defaultdict(list)
        for img in variant_images:
            images_by_variant[img.variant_id].append(img.to_dict())
        sizes_by_variant = defaultdict(list)
        for attr in sizes:
            sizes_by_variant[attr.variant_id].append(attr)

        price_by_product = {p.id: p.price_cents for p in products}
        variants_by_product = defaultdict(list)
        for v in variants:
            base = price_by_product[v.product_id]
            data = v.to_dict()
            data["images"] = images_by_variant[v.id]
            data["sizes"] = [attr.to_dict(base) for attr in sizes_by_variant[v.id]]
            variants_by_product[v.product_id].append(data)

        result = []
        for p in products:
            data = p.to_dict()
            data["images"] = images_by_product[p.id]
            data["variants"] = variants_by_product[p.id]
            data["group_visibility"] = groups_by_product[p.id]
            result.append(data)
        return result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _upload_images(self, uploads: list[Upload], folder: str) -> list[tuple[str, str]]:
        return [(upload_asset(self.assets, u.data, folder, u.filename), u.view_type) for u in uploads]

    def _check_sku_free(self, org_id: int | None, sku: str, exclude_id: int | None = None) -> None:
        query = self.session.query(Product.id).filter(Product.sku == sku)
        query = query.filter(Product.org_id.is_(None) if org_id is None else Product.org_id == org_id)
        if exclude_id is not None:
            query = query.filter(Product.id != exclude_id)
        if query.first():
            raise ConflictError("SKU already exists for this organization.", {"sku": sku})

    def _check_category(self, category_id: int, org_id: int | None, caller: Caller) -> Category:
        category = self.session.get(Category, category_id)
        if category is None or not can_see(caller, category.org_id):
            raise NotFoundError("Category not found", {"category_id": category_id})
        if category.org_id is not None and category.org_id != org_id:
            raise ValidationError("Category belongs to a different organization")
        return category

    def _write_group_links(self, product: Product, links: list[tuple[int, bool]]) -> None:
        if not links:
            return
        group_ids = [gid for gid, _ in links]
        groups = self.session.query(ProductGroup).filter(ProductGroup.id.in_(group_ids)).all()
        found = {g.id: g for g in groups}
        for gid in group_ids:
            group = found.get(gid)
            if group is None or (product.org_id is not None and group.org_id != product.org_id):
                raise NotFoundError("Group not found", {"group_id": gid})
        for gid, is_visible in links:
            self.session.add(GroupProductVisibility(group_id=gid, product_id=product.id, is_visible=is_visible))

    def _insert_sizes(self, variant_id: int, sizes: list[dict]) -> None:
        for size in sizes:
            self.session.add(VariantSizeAttribute(
                variant_id=variant_id,
                size=size["size"],
                price_adjustment_cents=size.get("price_adjustment_cents", 0),
                stock_quantity=size.get("stock_quantity", 0),
            ))

    def _insert_variant(self, product_id: int, variant: dict, uploaded: list[tuple[str, str]]) -> ProductVariant:
        row = ProductVariant(product_id=product_id, color=variant.get("color"), sku=variant["sku"])
        self.session.add(row)
        self.session.flush()
        self._insert_sizes(row.id, variant["sizes"])
        for url, view_type in variant["images"] + uploaded:
            self.session.add(VariantImage(variant_id=row.id, url=url, view_type=view_type))
        return row

    def create_product(self, payload: dict, caller: Caller, *, uploads: list[Upload] | None = None) -> dict:
        """
        Create a product with its images, variants, size attributes and
        group visibility links in one transaction.

        Files are pushed to the asset store before the transaction opens. If
        the transaction then fails, no rows survive; already-uploaded assets
        do (logged, acceptable leak).
        """
        authorize(caller, "MANAGE_PRODUCTS")
        payload = payload or {}

        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        requested_org = payload.get("org_id")
        org_id = resolve_target_org(
            caller, coerce_int(requested_org, "org_id") if requested_org not in (None, "") else None
        )
        image_urls = [url for url, _ in _parse_images(payload.get("images"), "images")]
        variants = _parse_variants(payload.get("variants"), allow_ids=False)
        group_links = _parse_group_visibility(payload.get("group_visibility"))

        uploaded_product_images = [url for url, _ in self._upload_images(uploads or [], "products")]
        uploaded_variant_images = {
            v["index"]: self._upload_images(v["uploads"], "variants") for v in variants
        }
        uploaded_refs = uploaded_product_images + [
            url for images in uploaded_variant_images.values() for url, _ in images
        ]

        def _op() -> int:
            with transaction_scope(self.session):
                self._check_category(patch["category_id"], org_id, caller)
                self._check_sku_free(org_id, patch["sku"])

                product = Product(org_id=org_id, **patch)
                self.session.add(product)
                self.session.flush()

                for url in image_urls + uploaded_product_images:
                    self.session.add(ProductImage(product_id=product.id, url=url))

                for variant in variants:
                    self._insert_variant(product.id, variant, uploaded_variant_images[variant["index"]])

                self._write_group_links(product, group_links)
                return product.id

        try:
            product_id = self._run(_op)
        except Exception:
            if uploaded_refs:
                logger.warning("Product creation failed; %d uploaded assets left in the asset store",
                               len(uploaded_refs))
            raise

        logger.info("Product %s created by user_id=%s org_id=%s", product_id, caller.user_id, org_id)
        return self.get_product(product_id, caller)

    def update_product(self, product_id: int, payload: dict, caller: Caller, *,
                       uploads: list[Upload] | None = None) -> dict:
        """Non-destructive upsert; see module docstring for the edit rules."""
        authorize(caller, "MANAGE_PRODUCTS")
        payload = payload or {}

        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        new_images = [url for url, _ in _parse_images(payload.get("images"), "images")]
        variants = _parse_variants(payload.get("variants"), allow_ids=True)
        deleted_variant_ids = set(coerce_id_list(payload.get("deleted_variant_ids"), "deleted_variant_ids"))
        deleted_image_refs = [str(u) for u in parse_json_list(payload.get("deleted_image_refs"), "deleted_image_refs")]
        replace_groups = "group_visibility" in payload
        group_links = _parse_group_visibility(payload.get("group_visibility"))

        conflicting = deleted_variant_ids & {v["id"] for v in variants if "id" in v}
        if conflicting:
            raise ValidationError("A variant cannot be both updated and deleted",
                                  {"variant_ids": sorted(conflicting)})

        product = self._get_visible(product_id, caller)
        require_org_ownership(caller, product.org_id, "product")

        uploaded_product_images = [url for url, _ in self._upload_images(uploads or [], "products")]
        uploaded_variant_images = {
            v["index"]: self._upload_images(v["uploads"], "variants") for v in variants
        }
        uploaded_refs = uploaded_product_images + [
            url for images in uploaded_variant_images.values() for url, _ in images
        ]

        removed_refs: list[str] = []

        def _op() -> None:
            removed_refs.clear()
            with transaction_scope(self.session):
                product = self.session.get(Product, product_id)
                if product is None:
                    raise NotFoundError("Product not found", {"product_id": product_id})

                if "sku" in patch and patch["sku"] != product.sku:
                    self._check_sku_free(product.org_id, patch["sku"], exclude_id=product.id)
                if "category_id" in patch and patch["category_id"] != product.category_id:
                    self._check_category(patch["category_id"], product.org_id, caller)

                for key, value in patch.items():
                    setattr(product, key, value)

                if deleted_image_refs:
                    doomed = (
                        self.session.query(ProductImage)
                        .filter(ProductImage.product_id == product.id, ProductImage.url.in_(deleted_image_refs))
                        .all()
                    )
                    for img in doomed:
                        removed_refs.append(img.url)
                        self.session.delete(img)

                for url in new_images + uploaded_product_images:
                    self.session.add(ProductImage(product_id=product.id, url=url))

                if deleted_variant_ids:
                    removed_refs.extend(self._delete_variants(product.id, deleted_variant_ids))

                for variant in variants:
                    uploaded = uploaded_variant_images[variant["index"]]
                    if "id" in variant:
                        self._update_variant(product.id, variant, uploaded)
                    else:
                        self._insert_variant(product.id, variant, uploaded)

                if replace_groups:
                    self.session.query(GroupProductVisibility).filter(
                        GroupProductVisibility.product_id == product.id
                    ).delete(synchronize_session=False)
                    self._write_group_links(product, group_links)

        try:
            self._run(_op)
        except Exception:
            if uploaded_refs:
                logger.warning("Product %s update failed; %d uploaded assets left in the asset store",
                               product_id, len(uploaded_refs))
            raise

        safe_delete_assets(self.assets, removed_refs)
        logger.info("Product %s updated by user_id=%s fields=%s", product_id, caller.user_id, sorted(patch))
        return self.get_product(product_id, caller)

    def _update_variant(self, product_id: int, variant: dict, uploaded: list[tuple[str, str]]) -> None:
        row = self.session.get(ProductVariant, variant["id"])
        if row is None or row.product_id != product_id:
            raise NotFoundError("Variant not found", {"variant_id": variant["id"]})

        if "sku" in variant:
            row.sku = variant["sku"]
        if "color" in variant:
            row.color = variant["color"]

        if variant["deleted_sizes"]:
            self.session.query(VariantSizeAttribute).filter(
                VariantSizeAttribute.variant_id == row.id,
                VariantSizeAttribute.size.in_(variant["deleted_sizes"]),
            ).delete(synchronize_session=False)

        existing = {
            attr.size: attr
            for attr in self.session.query(VariantSizeAttribute).filter_by(variant_id=row.id).all()
        }
        for size in variant["sizes"]:
            attr = existing.get(size["size"])
            if attr is None:
                self._insert_sizes(row.id, [size])
                continue
            if "price_adjustment_cents" in size:
                attr.price_adjustment_cents = size["price_adjustment_cents"]
            if "stock_quantity" in size:
                attr.stock_quantity = size["stock_quantity"]

        for url, view_type in variant["images"] + uploaded:
            self.session.add(VariantImage(variant_id=row.id, url=url, view_type=view_type))

    def _delete_variants(self, product_id: int, variant_ids) -> list[str]:
        """Delete variants (with images and sizes) of one product; returns hosted image refs."""
        owned = [
            vid for (vid,) in self.session.query(ProductVariant.id)
            .filter(ProductVariant.product_id == product_id, ProductVariant.id.in_(list(variant_ids)))
            .all()
        ]
        missing = set(variant_ids) - set(owned)
        if missing:
            raise NotFoundError("Variant not found", {"variant_ids": sorted(missing)})
        if not owned:
            return []
        self._ensure_variants_unreferenced(owned)

        refs = [url for (url,) in self.session.query(VariantImage.url).filter(VariantImage.variant_id.in_(owned)).all()]
        self.session.query(VariantLogoPosition).filter(
            VariantLogoPosition.product_variant_id.in_(owned)
        ).delete(synchronize_session=False)
        self.session.query(VariantImage).filter(VariantImage.variant_id.in_(owned)).delete(synchronize_session=False)
        self.session.query(VariantSizeAttribute).filter(
            VariantSizeAttribute.variant_id.in_(owned)
        ).delete(synchronize_session=False)
        self.session.query(ProductVariant).filter(ProductVariant.id.in_(owned)).delete(synchronize_session=False)
        return refs

    def _ensure_variants_unreferenced(self, variant_ids: list[int]) -> None:
        used = (
            self.session.query(Customization.id)
            .filter(Customization.product_variant_id.in_(variant_ids))
            .first()
        )
        if used:
            raise ConflictError("Variant is used by customizations and cannot be deleted",
                                {"variant_ids": sorted(variant_ids)})

    def delete_product(self, product_id: int, caller: Caller) -> bool:
        """
        Cascade in dependency order inside one transaction:
        logo positions -> variant images -> size attributes -> variants ->
        product images -> group visibility links -> product.

        Hosted images are deleted best-effort after commit.
        """
        authorize(caller, "MANAGE_PRODUCTS")
        product = self._get_visible(product_id, caller)
        require_org_ownership(caller, product.org_id, "product")

        removed_refs: list[str] = []

        def _op() -> None:
            removed_refs.clear()
            with transaction_scope(self.session):
                variant_ids = [
                    vid for (vid,) in self.session.query(ProductVariant.id)
                    .filter(ProductVariant.product_id == product_id).all()
                ]
                if variant_ids:
                    self._ensure_variants_unreferenced(variant_ids)
                in_cart = (
                    self.session.query(CartItem.id)
                    .filter(CartItem.product_id == product_id)
                    .first()
                )
                if in_cart:
                    raise ConflictError("Product is referenced by cart items; deactivate it instead",
                                        {"product_id": product_id})

                if variant_ids:
                    removed_refs.extend(
                        url for (url,) in self.session.query(VariantImage.url)
                        .filter(VariantImage.variant_id.in_(variant_ids)).all()
                    )
                    self.session.query(VariantLogoPosition).filter(
                        VariantLogoPosition.product_variant_id.in_(variant_ids)
                    ).delete(synchronize_session=False)
                    self.session.query(VariantImage).filter(
                        VariantImage.variant_id.in_(variant_ids)
                    ).delete(synchronize_session=False)
                    self.session.query(VariantSizeAttribute).filter(
                        VariantSizeAttribute.variant_id.in_(variant_ids)
                    ).delete(synchronize_session=False)
                    self.session.query(ProductVariant).filter(
                        ProductVariant.id.in_(variant_ids)
                    ).delete(synchronize_session=False)

                removed_refs.extend(
                    url for (url,) in self.session.query(ProductImage.url)
                    .filter(ProductImage.product_id == product_id).all()
                )
                self.session.query(ProductImage).filter(
                    ProductImage.product_id == product_id
                ).delete(synchronize_session=False)
                self.session.query(GroupProductVisibility).filter(
                    GroupProductVisibility.product_id == product_id
                ).delete(synchronize_session=False)
                self.session.query(Product).filter(Product.id == product_id).delete(synchronize_session=False)

        self._run(_op)
        safe_delete_assets(self.assets, removed_refs)
        logger.info("Product %s deleted by user_id=%s", product_id, caller.user_id)
        return True

    def find_products_by_sku(self, sku: str, caller: Caller) -> list[dict]:
        """Variant or product SKU lookup within the caller's visible catalog."""
        authorize(caller, "VIEW_CATALOG")
        variant_product_ids = self.session.query(ProductVariant.product_id).filter(ProductVariant.sku == sku)
        products = (
            self.session.query(Product)
            .filter(visible_filter(Product.org_id, caller))
            .filter(or_(Product.sku == sku, Product.id.in_(variant_product_ids)))
            .order_by(Product.id.asc())
            .all()
        )
        return self._hydrate(products)

    def products_summary(self, caller: Caller, org_id=None, timeframe=None) -> dict:
        """Product count for dashboards; staff see their own org only."""
        authorize(caller, "VIEW_CATALOG_REPORTS")
        timeframe = parse_timeframe(timeframe)
        query = self.session.query(func.count(Product.id))
        query = apply_report_scope(query, Product.org_id, caller, parse_report_org(org_id))
        query = apply_timeframe(query, Product.created_at, timeframe)
        return {"total_products": query.scalar() or 0, "timeframe": timeframe}
