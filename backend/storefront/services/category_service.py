"""
Category management.

MULTI-TENANT: Titles are unique per org scope. The NULL (global) scope is
checked explicitly since the UNIQUE(org_id, title) constraint does not
apply to NULL org_id rows.
"""

from __future__ import annotations

import logging

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Category, Product
from ..validation import coerce_int
from .access_service import (
    Caller,
    authorize,
    require_org_ownership,
    resolve_target_org,
    visible_filter,
)
from .concurrency import run_with_retry, transaction_scope

logger = logging.getLogger(__name__)


def _clean_title(title) -> str:
    title = (title or "").strip() if isinstance(title, str) else ""
    if not title:
        raise ValidationError("title is required")
    if len(title) > 120:
        raise ValidationError("title exceeds max length 120")
    return title


class CategoryStore:
    def __init__(self, session, *, retry_attempts: int = 3, retry_backoff: float = 0.1):
        self.session = session
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    def _run(self, op):
        return run_with_retry(op, session=self.session, attempts=self.retry_attempts,
                              backoff_base=self.retry_backoff)

    def _check_title_free(self, org_id: int | None, title: str, exclude_id: int | None = None) -> None:
        query = self.session.query(Category.id).filter(Category.title == title)
        query = query.filter(Category.org_id.is_(None) if org_id is None else Category.org_id == org_id)
        if exclude_id is not None:
            query = query.filter(Category.id != exclude_id)
        if query.first():
            raise ConflictError("Category with this title already exists.", {"title": title})

    def _get_for_mutation(self, category_id: int, caller: Caller) -> Category:
        """Another org's category raises AuthorizationError, not NotFoundError."""
        category = self.session.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category not found", {"category_id": category_id})
        require_org_ownership(caller, category.org_id, "category")
        return category

    def create_category(self, payload: dict, caller: Caller) -> dict:
        authorize(caller, "MANAGE_CATEGORIES")
        payload = payload or {}
        title = _clean_title(payload.get("title"))
        requested_org = payload.get("org_id")
        org_id = resolve_target_org(
            caller, coerce_int(requested_org, "org_id") if requested_org not in (None, "") else None
        )

        def _op() -> dict:
            with transaction_scope(self.session):
                self._check_title_free(org_id, title)
                category = Category(org_id=org_id, title=title, created_by_user_id=caller.user_id)
                self.session.add(category)
                self.session.flush()
                return category.to_dict()

        result = self._run(_op)
        logger.info("Category %s created org_id=%s by user_id=%s", result["id"], org_id, caller.user_id)
        return result

    def list_categories(self, caller: Caller) -> list[dict]:
        authorize(caller, "VIEW_CATALOG")
        rows = (
            self.session.query(Category)
            .filter(visible_filter(Category.org_id, caller))
            .order_by(Category.title.asc(), Category.id.asc())
            .all()
        )
        return [c.to_dict() for c in rows]

    def update_category(self, category_id: int, payload: dict, caller: Caller) -> dict:
        authorize(caller, "MANAGE_CATEGORIES")
        title = _clean_title((payload or {}).get("title"))
        self._get_for_mutation(category_id, caller)

        def _op() -> dict:
            with transaction_scope(self.session):
                row = self.session.get(Category, category_id)
                if row is None:
                    raise NotFoundError("Category not found", {"category_id": category_id})
                if row.title != title:
                    self._check_title_free(row.org_id, title, exclude_id=row.id)
                    row.title = title
                self.session.flush()
                return row.to_dict()

        return self._run(_op)

    def delete_category(self, category_id: int, caller: Caller) -> bool:
        authorize(caller, "MANAGE_CATEGORIES")
        self._get_for_mutation(category_id, caller)

        def _op() -> None:
            with transaction_scope(self.session):
                in_use = self.session.query(Product.id).filter(Product.category_id == category_id).first()
                if in_use:
                    raise ConflictError("Category is assigned to products and cannot be deleted",
                                        {"category_id": category_id})
                self.session.query(Category).filter(Category.id == category_id).delete(synchronize_session=False)

        self._run(_op)
        logger.info("Category %s deleted by user_id=%s", category_id, caller.user_id)
        return True
