from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Logo(db.Model):
    """Logo asset group. org_id NULL = global logo."""
    __tablename__ = "logos"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True, index=True)
    title = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "title": self.title,
            "created_at": to_utc_z(self.created_at),
        }


class LogoVariant(db.Model):
    """A color rendition of a logo; asset_url points into the asset store."""
    __tablename__ = "logo_variants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    logo_id = db.Column(db.Integer, db.ForeignKey("logos.id"), nullable=False, index=True)
    color = db.Column(db.String(64), nullable=False)
    asset_url = db.Column(db.String(512), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    logo = db.relationship("Logo")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "logo_id": self.logo_id,
            "color": self.color,
            "asset_url": self.asset_url,
        }


class LogoPlacement(db.Model):
    """
    Named body placement ("Left Chest", "Full Back", ...).

    view (front/back/left/right or NULL) is classified once, the first time
    a name is seen. Changing the classification rules never rewrites
    existing rows; that needs a data migration.
    """
    __tablename__ = "logo_placements"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    view = db.Column(db.String(8), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "view": self.view}


class LogoVariantPlacement(db.Model):
    __tablename__ = "logo_variants_placements"
    __table_args__ = (
        db.UniqueConstraint("logo_variant_id", "logo_placement_id", name="uq_logo_variant_placement"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    logo_variant_id = db.Column(db.Integer, db.ForeignKey("logo_variants.id"), nullable=False, index=True)
    logo_placement_id = db.Column(db.Integer, db.ForeignKey("logo_placements.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class VariantLogoPosition(db.Model):
    """
    Where a logo variant is drawn on a product variant's mockup.

    Coordinates and size are percentages of the mockup image box (0-100);
    z_index orders overlapping logos. view_type names the mockup image the
    position applies to ("front", "back", ...).

    MULTI-TENANT: org_id is the org of the staff member who positioned the
    logo; NULL means a SuperAdmin positioned it for the global catalog.
    """
    __tablename__ = "variant_logo_positions"
    __table_args__ = (
        db.Index("ix_variant_logo_positions_variant_z", "product_variant_id", "z_index"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True, index=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)
    logo_id = db.Column(db.Integer, db.ForeignKey("logos.id"), nullable=False, index=True)
    logo_variant_id = db.Column(db.Integer, db.ForeignKey("logo_variants.id"), nullable=False, index=True)
    logo_placement_id = db.Column(db.Integer, db.ForeignKey("logo_placements.id"), nullable=False)
    view_type = db.Column(db.String(32), nullable=False)

    position_x_percent = db.Column(db.Float, nullable=False)
    position_y_percent = db.Column(db.Float, nullable=False)
    width_percent = db.Column(db.Float, nullable=False)
    height_percent = db.Column(db.Float, nullable=False)
    z_index = db.Column(db.Integer, nullable=False, default=1)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_variant_id": self.product_variant_id,
            "logo_id": self.logo_id,
            "logo_variant_id": self.logo_variant_id,
            "placement_id": self.logo_placement_id,
            "view_type": self.view_type,
            "position_x_percent": self.position_x_percent,
            "position_y_percent": self.position_y_percent,
            "width_percent": self.width_percent,
            "height_percent": self.height_percent,
            "z_index": self.z_index,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
