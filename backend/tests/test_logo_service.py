# Overview: Pytest coverage for LogoStore and placement view classification.

import pytest
from storefront.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from storefront.models import Logo, LogoPlacement, LogoVariant, LogoVariantPlacement
from storefront.services.collaborators import Upload
from storefront.services.logo_service import classify_placement_view


class TestPlacementClassification:
    @pytest.mark.parametrize("name, view", [
        ("Chest Center", "front"),
        ("Lower Back", "back"),
        ("Hangtag", None),
        ("Left Sleeve", "left"),
        ("Right Sleeve", "right"),
        ("Full Front", "front"),
        ("Money Clip", "front"),
    ])
    def test_classify(self, name, view):
        assert classify_placement_view(name) == view

    def test_stored_view_is_reused(self, services, admin_a, db_session):
        """Once a name exists, its stored view wins over reclassification."""
        db_session.add(LogoPlacement(name="Pocket", view="left"))
        db_session.commit()

        logo = services.logos.create_logo(
            "Pocket Mark", [{"color": "Navy", "asset_url": "https://cdn.test/p.png"}], ["Pocket"], admin_a
        )

        placements = logo["variants"][0]["placements"]
        assert placements[0]["view"] == "left"
        assert db_session.query(LogoPlacement).filter_by(name="Pocket").count() == 1


class TestLogos:
    def test_create_logo(self, services, logo_a, org_a):
        assert logo_a["org_id"] == org_a.id
        assert logo_a["title"] == "Acme Mark"
        variant = logo_a["variants"][0]
        assert variant["color"] == "White"
        assert [(p["name"], p["view"]) for p in variant["placements"]] == [
            ("Left Chest", "front"),
            ("Full Back", "front"),
        ]

    def test_create_logo_with_upload(self, services, admin_a, assets):
        logo = services.logos.create_logo(
            "Uploaded", [{"color": "Red", "upload": Upload("red.svg", b"<svg/>")}], [], admin_a
        )
        url = logo["variants"][0]["asset_url"]
        assert url.startswith("mem://logos/")
        assert url in assets.uploaded

    def test_variant_requires_asset(self, services, admin_a):
        with pytest.raises(ValidationError):
            services.logos.create_logo("No Asset", [{"color": "Red"}], [], admin_a)

    def test_user_cannot_create(self, services, shopper_a):
        with pytest.raises(AuthorizationError):
            services.logos.create_logo("Nope", [], [], shopper_a)

    def test_other_org_logo_is_hidden(self, services, logo_a, admin_b):
        with pytest.raises(NotFoundError):
            services.logos.get_logo(logo_a["id"], admin_b)
        assert services.logos.list_logos(admin_b) == []

    def test_global_logo_is_read_only_for_org_staff(self, services, superadmin, admin_a):
        logo = services.logos.create_logo(
            "House Mark", [{"color": "Gold", "asset_url": "https://cdn.test/house.png"}], ["Chest Center"], superadmin
        )
        assert logo["org_id"] is None
        assert services.logos.get_logo(logo["id"], admin_a)["title"] == "House Mark"
        with pytest.raises(AuthorizationError):
            services.logos.delete_logo(logo["id"], admin_a)

    def test_add_variant(self, services, logo_a, admin_a):
        variant = services.logos.add_variant(
            logo_a["id"], "Black", "https://cdn.test/acme-black.png", ["Left Chest"], admin_a
        )
        assert variant["logo_id"] == logo_a["id"]
        assert [p["name"] for p in variant["placements"]] == ["Left Chest"]
        assert len(services.logos.get_logo(logo_a["id"], admin_a)["variants"]) == 2


class TestPlacementLinks:
    def test_attach_is_idempotent(self, services, logo_a, admin_a, db_session):
        variant_id = logo_a["variants"][0]["id"]

        services.logos.attach_placements(variant_id, ["Lower Back"], admin_a)
        placements = services.logos.attach_placements(variant_id, ["Lower Back", "Left Chest"], admin_a)

        assert [p["name"] for p in placements] == ["Left Chest", "Full Back", "Lower Back"]
        lower_back = db_session.query(LogoPlacement).filter_by(name="Lower Back").one()
        links = db_session.query(LogoVariantPlacement).filter_by(
            logo_variant_id=variant_id, logo_placement_id=lower_back.id
        ).count()
        assert links == 1

    def test_attach_requires_names(self, services, logo_a, admin_a):
        with pytest.raises(ValidationError):
            services.logos.attach_placements(logo_a["variants"][0]["id"], [], admin_a)

    def test_list_and_detach(self, services, logo_a, admin_a, shopper_a):
        variant_id = logo_a["variants"][0]["id"]
        assert len(services.logos.list_variant_placements(variant_id, shopper_a)) == 2

        assert services.logos.detach_all_placements(variant_id, admin_a) == 2
        assert services.logos.list_variant_placements(variant_id, shopper_a) == []

    def test_cross_org_attach_is_not_found(self, services, logo_a, admin_b):
        with pytest.raises(NotFoundError):
            services.logos.attach_placements(logo_a["variants"][0]["id"], ["Lower Back"], admin_b)


class TestLogoDeletion:
    def test_delete_logo_removes_rows_and_assets(self, services, logo_a, admin_a, assets, db_session):
        assert services.logos.delete_logo(logo_a["id"], admin_a) is True

        assert db_session.query(Logo).count() == 0
        assert db_session.query(LogoVariant).count() == 0
        assert db_session.query(LogoVariantPlacement).count() == 0
        # Placements are shared reference data and survive
        assert db_session.query(LogoPlacement).count() == 2
        assert assets.deleted == ["https://cdn.test/acme-white.png"]

    def test_delete_variant(self, services, logo_a, admin_a, db_session):
        variant_id = logo_a["variants"][0]["id"]
        assert services.logos.delete_variant(variant_id, admin_a) is True
        assert db_session.get(LogoVariant, variant_id) is None

    def test_customization_blocks_delete(self, services, logo_a, admin_a, customization_a, db_session):
        with pytest.raises(ConflictError):
            services.logos.delete_logo(logo_a["id"], admin_a)
        with pytest.raises(ConflictError):
            services.logos.delete_variant(customization_a["logo_variant_id"], admin_a)
        assert db_session.query(LogoVariant).count() == 1


class TestLogoSummary:
    def test_counts_per_org(self, services, logo_a, superadmin, admin_a, admin_b, manager_a, org_a):
        assert services.logos.logo_summary(admin_a)["total_logos"] == 1
        assert services.logos.logo_summary(manager_a, timeframe="week")["total_logos"] == 1
        assert services.logos.logo_summary(admin_b)["total_logos"] == 0
        assert services.logos.logo_summary(superadmin, org_id=org_a.id)["total_logos"] == 1

    def test_shopper_denied(self, services, shopper_a):
        with pytest.raises(AuthorizationError):
            services.logos.logo_summary(shopper_a)
