# Overview: Pytest coverage for CatalogStore products, variants and size attributes.

"""
Catalog Tests

Covers product creation with nested variants and sizes, SKU uniqueness per
org scope, non-destructive edits, visibility across tenants, and the
delete cascade (rows inside the transaction, hosted assets after commit).
"""

import logging

import pytest
from storefront.errors import (
    AuthorizationError,
    CollaboratorFailure,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from storefront.models import (
    CartItem,
    Product,
    ProductGroup,
    ProductImage,
    ProductVariant,
    VariantImage,
    VariantSizeAttribute,
)
from storefront.services.collaborators import Upload
from storefront.time_utils import utcnow


def _sizes_by_name(variant):
    return {s["size"]: s for s in variant["sizes"]}


class TestCreateProduct:
    def test_create_with_variants_and_sizes(self, services, admin_a, org_a, make_product):
        product = make_product(admin_a)

        assert product["org_id"] == org_a.id
        assert product["price_cents"] == 1500
        assert product["price"] == "15.00"
        assert [img["url"] for img in product["images"]] == ["https://cdn.test/tee-front.png"]

        assert len(product["variants"]) == 1
        variant = product["variants"][0]
        assert variant["sku"] == "TEE-001-BLK"
        assert variant["color"] == "Black"
        assert variant["images"][0]["type"] == "back"

        sizes = _sizes_by_name(variant)
        assert sizes["M"]["final_price_cents"] == 1500
        assert sizes["M"]["stock_quantity"] == 10
        assert sizes["XL"]["final_price_cents"] == 1700

    def test_missing_required_fields(self, services, admin_a):
        with pytest.raises(ValidationError) as exc:
            services.catalog.create_product({"title": "No SKU"}, admin_a)
        assert "sku" in exc.value.message

    def test_user_role_cannot_create(self, services, shopper_a, make_product):
        with pytest.raises(AuthorizationError):
            make_product(shopper_a)

    def test_admin_cannot_target_other_org(self, services, admin_a, org_b, make_product):
        with pytest.raises(AuthorizationError):
            make_product(admin_a, org_id=org_b.id)

    def test_duplicate_sizes_rejected(self, services, admin_a, make_product):
        variants = [{"sku": "DUP-1", "sizes": [{"size": "M"}, {"name": "M"}]}]
        with pytest.raises(ValidationError):
            make_product(admin_a, sku="DUP", variants=variants)

    def test_negative_price_rejected(self, services, admin_a, make_product):
        with pytest.raises(ValidationError):
            make_product(admin_a, price_cents=-1)

    def test_uploads_go_to_asset_store(self, services, admin_a, assets, global_category):
        payload = {
            "title": "Uploaded Tee",
            "description": "Has uploaded images",
            "sku": "UP-1",
            "category_id": global_category,
            "price_cents": 900,
            "variants": [{"sku": "UP-1-RED", "color": "Red",
                          "uploads": [Upload("red-left.png", b"png", view_type="left")]}],
        }
        product = services.catalog.create_product(
            payload, admin_a, uploads=[Upload("main.png", b"png")]
        )

        assert len(assets.uploaded) == 2
        assert product["images"][0]["url"].startswith("mem://products/")
        variant_image = product["variants"][0]["images"][0]
        assert variant_image["url"].startswith("mem://variants/")
        assert variant_image["type"] == "left"

    def test_upload_failure_leaves_no_rows(self, services, admin_a, assets, db_session):
        assets.fail_uploads = True
        with pytest.raises(CollaboratorFailure):
            services.catalog.create_product(
                {"title": "T", "description": "D", "sku": "FAIL-1", "category_id": 1, "price_cents": 100},
                admin_a,
                uploads=[Upload("x.png", b"x")],
            )
        assert db_session.query(Product).count() == 0


class TestSkuUniqueness:
    """SKU is unique per org scope, including the global (NULL) scope."""

    def test_duplicate_in_same_org(self, services, admin_a, make_product):
        make_product(admin_a)
        with pytest.raises(ConflictError):
            make_product(admin_a)

    def test_same_sku_in_other_org_allowed(self, services, admin_a, admin_b, make_product):
        a = make_product(admin_a)
        b = make_product(admin_b)
        assert a["sku"] == b["sku"]
        assert a["org_id"] != b["org_id"]

    def test_duplicate_global_sku(self, services, superadmin, make_product):
        make_product(superadmin)
        with pytest.raises(ConflictError):
            make_product(superadmin)

    def test_racing_duplicate_is_conflict(self, services, admin_a, make_product, db_session, monkeypatch):
        """A writer that slips past the SKU pre-check hits the unique key and gets a 409."""
        make_product(admin_a)
        monkeypatch.setattr(services.catalog, "_check_sku_free", lambda *args, **kwargs: None)

        with pytest.raises(ConflictError):
            make_product(admin_a)
        assert db_session.query(Product).count() == 1

    def test_rename_into_taken_sku(self, services, admin_a, make_product):
        make_product(admin_a, sku="ONE")
        second = make_product(admin_a, sku="TWO")
        with pytest.raises(ConflictError):
            services.catalog.update_product(second["id"], {"sku": "ONE"}, admin_a)


class TestUpdateProduct:
    """Patch semantics: absence never deletes."""

    def test_patch_leaves_omitted_fields(self, services, admin_a, make_product):
        product = make_product(admin_a)

        updated = services.catalog.update_product(product["id"], {"title": "Renamed Tee"}, admin_a)

        assert updated["title"] == "Renamed Tee"
        assert updated["description"] == "Heavyweight cotton tee"
        assert len(updated["images"]) == 1
        assert len(updated["variants"]) == 1
        assert len(updated["variants"][0]["sizes"]) == 2

    def test_variant_upsert(self, services, admin_a, make_product):
        product = make_product(admin_a)
        variant_id = product["variants"][0]["id"]

        updated = services.catalog.update_product(product["id"], {
            "variants": [
                {
                    "id": variant_id,
                    "color": "Jet Black",
                    "sizes": [{"size": "M", "stock_quantity": 3}, {"size": "L", "price_adjustment_cents": 100}],
                    "deleted_sizes": ["XL"],
                },
                {"sku": "TEE-001-WHT", "color": "White", "sizes": [{"size": "S"}]},
            ],
        }, admin_a)

        variants = {v["sku"]: v for v in updated["variants"]}
        assert set(variants) == {"TEE-001-BLK", "TEE-001-WHT"}

        black = variants["TEE-001-BLK"]
        assert black["color"] == "Jet Black"
        sizes = _sizes_by_name(black)
        assert set(sizes) == {"M", "L"}
        assert sizes["M"]["stock_quantity"] == 3
        assert sizes["L"]["final_price_cents"] == 1600
        # Existing variant image is untouched
        assert len(black["images"]) == 1

    def test_explicit_deletion_lists(self, services, admin_a, assets, make_product, db_session):
        product = make_product(admin_a)
        variant_id = product["variants"][0]["id"]

        updated = services.catalog.update_product(product["id"], {
            "deleted_image_refs": ["https://cdn.test/tee-front.png"],
            "deleted_variant_ids": [variant_id],
        }, admin_a)

        assert updated["images"] == []
        assert updated["variants"] == []
        assert db_session.query(VariantSizeAttribute).count() == 0
        assert "https://cdn.test/tee-front.png" in assets.deleted
        assert "https://cdn.test/tee-blk-back.png" in assets.deleted

    def test_update_and_delete_same_variant(self, services, admin_a, make_product):
        product = make_product(admin_a)
        variant_id = product["variants"][0]["id"]
        with pytest.raises(ValidationError):
            services.catalog.update_product(product["id"], {
                "variants": [{"id": variant_id, "color": "Red"}],
                "deleted_variant_ids": [variant_id],
            }, admin_a)

    def test_variant_of_other_product(self, services, admin_a, make_product):
        first = make_product(admin_a, sku="FIRST")
        second = make_product(admin_a, sku="SECOND")
        with pytest.raises(NotFoundError):
            services.catalog.update_product(second["id"], {
                "variants": [{"id": first["variants"][0]["id"], "color": "Red"}],
            }, admin_a)

    def test_failed_update_rolls_back(self, services, admin_a, make_product, db_session):
        product = make_product(admin_a)
        with pytest.raises(NotFoundError):
            services.catalog.update_product(product["id"], {
                "title": "Should not stick",
                "variants": [{"id": 99999, "color": "Red"}],
            }, admin_a)
        assert services.catalog.get_product(product["id"], admin_a)["title"] == "Classic Tee"

    def test_failed_update_logs_leaked_uploads(self, services, admin_a, assets, make_product, caplog):
        product = make_product(admin_a)
        with caplog.at_level(logging.WARNING, logger="storefront.services.catalog_service"):
            with pytest.raises(NotFoundError):
                services.catalog.update_product(product["id"], {
                    "variants": [{"id": 99999, "color": "Red"}],
                }, admin_a, uploads=[Upload("extra.png", b"png")])

        assert len(assets.uploaded) == 1
        assert "1 uploaded assets left in the asset store" in caplog.text


class TestVisibility:
    def test_cross_tenant_read_is_not_found(self, services, admin_a, admin_b, make_product):
        product = make_product(admin_a)
        with pytest.raises(NotFoundError):
            services.catalog.get_product(product["id"], admin_b)

    def test_cross_tenant_update_is_not_found(self, services, admin_a, admin_b, make_product):
        product = make_product(admin_a)
        with pytest.raises(NotFoundError):
            services.catalog.update_product(product["id"], {"title": "Hijack"}, admin_b)

    def test_global_product_read_only_for_org_admin(self, services, superadmin, admin_a, make_product):
        product = make_product(superadmin, sku="GLOBAL-1")
        assert services.catalog.get_product(product["id"], admin_a)["org_id"] is None
        with pytest.raises(AuthorizationError):
            services.catalog.update_product(product["id"], {"title": "Mine now"}, admin_a)

    def test_list_products_scoping(self, services, superadmin, admin_a, admin_b, shopper_a, make_product):
        make_product(superadmin, sku="G-1")
        make_product(admin_a, sku="A-1")
        make_product(admin_b, sku="B-1")

        def skus(caller, **filters):
            return sorted(p["sku"] for p in services.catalog.list_products(filters, caller)["items"])

        assert skus(shopper_a) == ["A-1", "G-1"]
        assert skus(admin_b) == ["B-1", "G-1"]
        assert skus(superadmin) == ["A-1", "B-1", "G-1"]
        assert skus(shopper_a, sku="B-1") == []
        assert skus(shopper_a, title="classic") == ["A-1", "G-1"]

    def test_list_products_pagination(self, services, admin_a, make_product):
        for i in range(5):
            make_product(admin_a, sku=f"P-{i}")

        result = services.catalog.list_products({"page": 2, "per_page": 2}, admin_a)

        assert result["count"] == 2
        assert result["pagination"]["total"] == 5
        assert result["pagination"]["total_pages"] == 3
        assert result["pagination"]["has_next"] is True
        assert result["pagination"]["has_prev"] is True

    @pytest.mark.parametrize("page, per_page", [
        (1, 0),
        (1, "-3"),
        (0, 2),
        ("-1", 2),
        (1, 101),
    ])
    def test_pagination_bounds_rejected(self, services, admin_a, make_product, page, per_page):
        make_product(admin_a)
        with pytest.raises(ValidationError):
            services.catalog.list_products({"page": page, "per_page": per_page}, admin_a)

    def test_pagination_default_per_page(self, services, admin_a, make_product):
        make_product(admin_a)
        result = services.catalog.list_products({"page": "1"}, admin_a)
        assert result["pagination"]["per_page"] == 20
        assert result["pagination"]["total_pages"] == 1

    def test_find_by_variant_sku(self, services, admin_a, admin_b, make_product):
        product = make_product(admin_a)
        assert [p["id"] for p in services.catalog.find_products_by_sku("TEE-001-BLK", admin_a)] == [product["id"]]
        assert services.catalog.find_products_by_sku("TEE-001-BLK", admin_b) == []


class TestDeleteProduct:
    def test_cascade_and_asset_cleanup(self, services, admin_a, assets, make_product, db_session):
        product = make_product(admin_a, sku="DEL-1")
        product = services.catalog.update_product(
            product["id"], {}, admin_a, uploads=[Upload("extra.png", b"png")]
        )
        hosted = [img["url"] for img in product["images"] if img["url"].startswith("mem://")]
        assert len(hosted) == 1

        assert services.catalog.delete_product(product["id"], admin_a) is True

        assert db_session.query(Product).count() == 0
        assert db_session.query(ProductVariant).count() == 0
        assert db_session.query(ProductImage).count() == 0
        assert db_session.query(VariantImage).count() == 0
        assert db_session.query(VariantSizeAttribute).count() == 0
        assert hosted[0] in assets.deleted
        assert hosted[0] not in assets.uploaded

    def test_asset_delete_failure_is_swallowed(self, services, admin_a, assets, make_product, db_session):
        product = make_product(admin_a)
        assets.fail_deletes = True
        assert services.catalog.delete_product(product["id"], admin_a) is True
        assert db_session.query(Product).count() == 0

    def test_customization_blocks_delete(self, services, superadmin, customization_a, db_session):
        variant = db_session.get(ProductVariant, customization_a["product_variant_id"])
        with pytest.raises(ConflictError):
            services.catalog.delete_product(variant.product_id, superadmin)
        assert db_session.query(Product).count() == 1

    def test_cart_reference_blocks_delete(self, services, admin_a, shopper_a, make_product, db_session):
        product = make_product(admin_a)
        services.cart.add_item({"product_id": product["id"], "unit_total_cents": 1500}, shopper_a)
        with pytest.raises(ConflictError):
            services.catalog.delete_product(product["id"], admin_a)
        assert db_session.query(CartItem).count() == 1

    def test_other_org_cannot_delete(self, services, admin_a, admin_b, make_product):
        product = make_product(admin_a)
        with pytest.raises(NotFoundError):
            services.catalog.delete_product(product["id"], admin_b)


class TestGroupVisibility:
    def test_links_written_and_replaced(self, services, admin_a, org_a, make_product, db_session):
        group = ProductGroup(org_id=org_a.id, title="VIP")
        db_session.add(group)
        db_session.commit()

        product = make_product(admin_a, group_visibility=[{"group_id": group.id, "is_visible": False}])
        assert product["group_visibility"] == [
            {"group_id": group.id, "product_id": product["id"], "is_visible": False}
        ]

        untouched = services.catalog.update_product(product["id"], {"title": "Still linked"}, admin_a)
        assert len(untouched["group_visibility"]) == 1

        cleared = services.catalog.update_product(product["id"], {"group_visibility": []}, admin_a)
        assert cleared["group_visibility"] == []

    def test_other_org_group_is_not_found(self, services, admin_a, org_b, make_product, db_session):
        group = ProductGroup(org_id=org_b.id, title="Beta VIP")
        db_session.add(group)
        db_session.commit()

        with pytest.raises(NotFoundError):
            make_product(admin_a, group_visibility=[{"group_id": group.id}])
        assert db_session.query(Product).count() == 0


class TestProductsSummary:
    def test_counts_own_org_only(self, services, superadmin, admin_a, admin_b, org_a, make_product):
        make_product(admin_a, sku="A-1")
        make_product(admin_a, sku="A-2")
        make_product(admin_b, sku="B-1")
        make_product(superadmin, sku="G-1")

        assert services.catalog.products_summary(admin_a)["total_products"] == 2
        assert services.catalog.products_summary(admin_b)["total_products"] == 1
        assert services.catalog.products_summary(superadmin)["total_products"] == 4
        assert services.catalog.products_summary(superadmin, org_id=org_a.id)["total_products"] == 2

    def test_timeframe(self, services, admin_a, make_product, db_session):
        old = make_product(admin_a, sku="OLD")
        make_product(admin_a, sku="NEW")
        now = utcnow()
        db_session.get(Product, old["id"]).created_at = now.replace(year=now.year - 1, month=6, day=1)
        db_session.commit()

        assert services.catalog.products_summary(admin_a, timeframe="day")["total_products"] == 1
        assert services.catalog.products_summary(admin_a, timeframe="year")["total_products"] == 1
        assert services.catalog.products_summary(admin_a)["total_products"] == 2

    def test_shopper_denied(self, services, shopper_a):
        with pytest.raises(AuthorizationError):
            services.catalog.products_summary(shopper_a)
