"""
LogoStore: logos, color variants and body placements.

Placement view classification:
    A placement name is classified the first time it is seen and the view is
    stored on the LogoPlacement row. Later attachments reuse the stored view,
    so changing PLACEMENT_VIEW_RULES does not touch existing placements.

Link dedup:
    (logo variant, placement) pairs are checked before insert; attaching an
    already-linked placement is a no-op, which keeps retries idempotent.

Deletion:
    Removing a logo variant also removes its mockup positions
    (VariantLogoPosition). Placements are shared and survive.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from sqlalchemy import func

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Customization, Logo, LogoPlacement, LogoVariant, LogoVariantPlacement, VariantLogoPosition
from .access_service import Caller, authorize, can_see, require_org_ownership, resolve_target_org, visible_filter
from .collaborators import AssetStore, Upload, safe_delete_assets, upload_asset
from .concurrency import run_with_retry, transaction_scope
from .reporting import apply_report_scope, apply_timeframe, parse_report_org, parse_timeframe

logger = logging.getLogger(__name__)

# Ordered: first matching view wins.
PLACEMENT_VIEW_RULES = (
    ("front", ("front", "chest", "center", "full", "barrel", "clip")),
    ("back", ("back",)),
    ("left", ("left",)),
    ("right", ("right",)),
)


def classify_placement_view(name: str) -> str | None:
    """
    "Chest Center" -> "front", "Lower Back" -> "back", "Hangtag" -> None.
    """
    lowered = (name or "").lower()
    for view, keywords in PLACEMENT_VIEW_RULES:
        if any(k in lowered for k in keywords):
            return view
    return None


def clean_placement_names(names) -> list[str]:
    if names is None:
        return []
    if isinstance(names, str):
        names = [names]
    cleaned: list[str] = []
    for raw in names:
        name = str(raw or "").strip()
        if not name:
            raise ValidationError("Placement names cannot be blank")
        if len(name) > 120:
            raise ValidationError("Placement name exceeds max length 120")
        if name not in cleaned:
            cleaned.append(name)
    return cleaned


def _clean_color(color) -> str:
    color = str(color or "").strip()
    if not color:
        raise ValidationError("color is required")
    if len(color) > 64:
        raise ValidationError("color exceeds max length 64")
    return color


class LogoStore:
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
    # Placement helpers (run inside the caller's transaction)
    # ------------------------------------------------------------------

    def get_or_create_placement(self, name: str) -> LogoPlacement:
        placement = self.session.query(LogoPlacement).filter(LogoPlacement.name == name).first()
        if placement is not None:
            return placement
        placement = LogoPlacement(name=name, view=classify_placement_view(name))
        self.session.add(placement)
        self.session.flush()
        logger.debug("Placement %r created with view=%s", name, placement.view)
        return placement

    def _link(self, variant_id: int, placement_id: int) -> bool:
        exists = (
            self.session.query(LogoVariantPlacement.id)
            .filter_by(logo_variant_id=variant_id, logo_placement_id=placement_id)
            .first()
        )
        if exists:
            return False
        self.session.add(LogoVariantPlacement(logo_variant_id=variant_id, logo_placement_id=placement_id))
        self.session.flush()
        return True

    def _attach(self, variant_id: int, names: list[str]) -> list[LogoPlacement]:
        placements = []
        for name in names:
            placement = self.get_or_create_placement(name)
            self._link(variant_id, placement.id)
            placements.append(placement)
        return placements

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_visible_logo(self, logo_id: int, caller: Caller) -> Logo:
        logo = self.session.get(Logo, logo_id)
        # Another org's logo is reported as missing, not forbidden.
        if logo is None or not can_see(caller, logo.org_id):
            raise NotFoundError("Logo not found", {"logo_id": logo_id})
        return logo

    def get_visible_variant(self, variant_id: int, caller: Caller) -> tuple[LogoVariant, Logo]:
        variant = self.session.get(LogoVariant, variant_id)
        if variant is None:
            raise NotFoundError("Logo variant not found", {"logo_variant_id": variant_id})
        logo = self.session.get(Logo, variant.logo_id)
        if logo is None or not can_see(caller, logo.org_id):
            raise NotFoundError("Logo variant not found", {"logo_variant_id": variant_id})
        return variant, logo

    def _resolve_asset(self, entry: dict, index: int) -> str:
        upload = entry.get("upload")
        if isinstance(upload, Upload):
            return upload_asset(self.assets, upload.data, "logos", upload.filename)
        url = str(entry.get("asset_url") or "").strip()
        if not url:
            raise ValidationError(f"variants[{index}].asset_url is required")
        return url

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_logo(self, title: str, variants: list[dict] | None, placements, caller: Caller, *,
                    org_id: int | None = None) -> dict:
        """
        Create a logo with its color variants, attaching every placement name
        to every variant. Variant entries: {"color", "asset_url"} or
        {"color", "upload": Upload}; an entry may add its own "placements".
        """
        authorize(caller, "MANAGE_LOGOS")
        title = str(title or "").strip()
        if not title:
            raise ValidationError("title is required")
        if len(title) > 255:
            raise ValidationError("title exceeds max length 255")
        target_org = resolve_target_org(caller, org_id)
        shared_names = clean_placement_names(placements)

        prepared = []
        for i, entry in enumerate(variants or []):
            if not isinstance(entry, dict):
                raise ValidationError(f"variants[{i}] must be an object")
            color = _clean_color(entry.get("color"))
            names = shared_names + [n for n in clean_placement_names(entry.get("placements")) if n not in shared_names]
            prepared.append((color, entry, names))

        # Uploads happen before the transaction; the row needs the URL.
        resolved = []
        for i, (color, entry, names) in enumerate(prepared):
            url = self._resolve_asset(entry, i)
            resolved.append((color, url, names))

        def _op() -> int:
            with transaction_scope(self.session):
                logo = Logo(org_id=target_org, title=title)
                self.session.add(logo)
                self.session.flush()
                for color, url, names in resolved:
                    variant = LogoVariant(logo_id=logo.id, color=color, asset_url=url)
                    self.session.add(variant)
                    self.session.flush()
                    self._attach(variant.id, names)
                return logo.id

        logo_id = self._run(_op)
        logger.info("Logo %s created org_id=%s variants=%d by user_id=%s",
                    logo_id, target_org, len(resolved), caller.user_id)
        return self.get_logo(logo_id, caller)

    def add_variant(self, logo_id: int, color: str, asset_url: str | None, placements, caller: Caller, *,
                    upload: Upload | None = None) -> dict:
        authorize(caller, "MANAGE_LOGOS")
        color = _clean_color(color)
        names = clean_placement_names(placements)
        logo = self._get_visible_logo(logo_id, caller)
        require_org_ownership(caller, logo.org_id, "logo")
        url = self._resolve_asset({"asset_url": asset_url, "upload": upload}, 0)

        def _op() -> int:
            with transaction_scope(self.session):
                variant = LogoVariant(logo_id=logo_id, color=color, asset_url=url)
                self.session.add(variant)
                self.session.flush()
                self._attach(variant.id, names)
                return variant.id

        variant_id = self._run(_op)
        return self._variant_payload(variant_id)

    def attach_placements(self, variant_id: int, names, caller: Caller) -> list[dict]:
        """Idempotent: already-linked placements are left alone. Returns the variant's placements."""
        authorize(caller, "MANAGE_LOGOS")
        names = clean_placement_names(names)
        if not names:
            raise ValidationError("At least one placement name is required")
        _, logo = self.get_visible_variant(variant_id, caller)
        require_org_ownership(caller, logo.org_id, "logo")

        def _op() -> None:
            with transaction_scope(self.session):
                self._attach(variant_id, names)

        self._run(_op)
        return self._placements_for([variant_id])[variant_id]

    def detach_all_placements(self, variant_id: int, caller: Caller) -> int:
        authorize(caller, "MANAGE_LOGOS")
        _, logo = self.get_visible_variant(variant_id, caller)
        require_org_ownership(caller, logo.org_id, "logo")

        def _op() -> int:
            with transaction_scope(self.session):
                return (
                    self.session.query(LogoVariantPlacement)
                    .filter(LogoVariantPlacement.logo_variant_id == variant_id)
                    .delete(synchronize_session=False)
                )

        return self._run(_op)

    def _ensure_unreferenced(self, variant_ids: list[int]) -> None:
        if not variant_ids:
            return
        used = (
            self.session.query(Customization.id)
            .filter(Customization.logo_variant_id.in_(variant_ids))
            .first()
        )
        if used:
            raise ConflictError("Logo variant is used by customizations and cannot be deleted",
                                {"logo_variant_ids": sorted(variant_ids)})

    def _delete_variant_rows(self, variant_ids: list[int]) -> list[str]:
        refs = [
            url for (url,) in self.session.query(LogoVariant.asset_url)
            .filter(LogoVariant.id.in_(variant_ids)).all()
        ]
        self.session.query(VariantLogoPosition).filter(
            VariantLogoPosition.logo_variant_id.in_(variant_ids)
        ).delete(synchronize_session=False)
        self.session.query(LogoVariantPlacement).filter(
            LogoVariantPlacement.logo_variant_id.in_(variant_ids)
        ).delete(synchronize_session=False)
        self.session.query(LogoVariant).filter(LogoVariant.id.in_(variant_ids)).delete(synchronize_session=False)
        return refs

    def delete_variant(self, variant_id: int, caller: Caller) -> bool:
        authorize(caller, "MANAGE_LOGOS")
        _, logo = self.get_visible_variant(variant_id, caller)
        require_org_ownership(caller, logo.org_id, "logo")

        removed: list[str] = []

        def _op() -> None:
            removed.clear()
            with transaction_scope(self.session):
                self._ensure_unreferenced([variant_id])
                removed.extend(self._delete_variant_rows([variant_id]))

        self._run(_op)
        safe_delete_assets(self.assets, removed)
        return True

    def delete_logo(self, logo_id: int, caller: Caller) -> bool:
        authorize(caller, "MANAGE_LOGOS")
        logo = self._get_visible_logo(logo_id, caller)
        require_org_ownership(caller, logo.org_id, "logo")

        removed: list[str] = []

        def _op() -> None:
            removed.clear()
            with transaction_scope(self.session):
                variant_ids = [
                    vid for (vid,) in self.session.query(LogoVariant.id).filter(LogoVariant.logo_id == logo_id).all()
                ]
                self._ensure_unreferenced(variant_ids)
                if variant_ids:
                    removed.extend(self._delete_variant_rows(variant_ids))
                self.session.query(Logo).filter(Logo.id == logo_id).delete(synchronize_session=False)

        self._run(_op)
        safe_delete_assets(self.assets, removed)
        logger.info("Logo %s deleted by user_id=%s (%d assets scheduled)", logo_id, caller.user_id, len(removed))
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _placements_for(self, variant_ids: list[int]) -> dict[int, list[dict]]:
        result: dict[int, list[dict]] = defaultdict(list)
        if not variant_ids:
            return result
        rows = (
            self.session.query(LogoVariantPlacement.logo_variant_id, LogoPlacement)
            .join(LogoPlacement, LogoPlacement.id == LogoVariantPlacement.logo_placement_id)
            .filter(LogoVariantPlacement.logo_variant_id.in_(variant_ids))
            .order_by(LogoVariantPlacement.id.asc())
            .all()
        )
        for variant_id, placement in rows:
            result[variant_id].append(placement.to_dict())
        return result

    def _variant_payload(self, variant_id: int) -> dict:
        variant = self.session.get(LogoVariant, variant_id)
        data = variant.to_dict()
        data["placements"] = self._placements_for([variant_id])[variant_id]
        return data

    def _hydrate(self, logos: list[Logo]) -> list[dict]:
        if not logos:
            return []
        variants = (
            self.session.query(LogoVariant)
            .filter(LogoVariant.logo_id.in_([l.id for l in logos]))
            .order_by(LogoVariant.id.asc())
            .all()
        )
        placements = self._placements_for([v.id for v in variants])
        variants_by_logo = defaultdict(list)
        for v in variants:
            data = v.to_dict()
            data["placements"] = placements[v.id]
            variants_by_logo[v.logo_id].append(data)

        result = []
        for logo in logos:
            data = logo.to_dict()
            data["variants"] = variants_by_logo[logo.id]
            result.append(data)
        return result

    def list_logos(self, caller: Caller) -> list[dict]:
        authorize(caller, "VIEW_CATALOG")
        logos = (
            self.session.query(Logo)
            .filter(visible_filter(Logo.org_id, caller))
            .order_by(Logo.created_at.desc(), Logo.id.desc())
            .all()
        )
        return self._hydrate(logos)

    def get_logo(self, logo_id: int, caller: Caller) -> dict:
        authorize(caller, "VIEW_CATALOG")
        return self._hydrate([self._get_visible_logo(logo_id, caller)])[0]

    def list_variant_placements(self, variant_id: int, caller: Caller) -> list[dict]:
        authorize(caller, "VIEW_CATALOG")
        self.get_visible_variant(variant_id, caller)
        return self._placements_for([variant_id])[variant_id]

    def logo_summary(self, caller: Caller, org_id=None, timeframe=None) -> dict:
        """Logo count for dashboards; staff see their own org only."""
        authorize(caller, "VIEW_CATALOG_REPORTS")
        timeframe = parse_timeframe(timeframe)
        query = self.session.query(func.count(Logo.id))
        query = apply_report_scope(query, Logo.org_id, caller, parse_report_org(org_id))
        query = apply_timeframe(query, Logo.created_at, timeframe)
        return {"total_logos": query.scalar() or 0, "timeframe": timeframe}
