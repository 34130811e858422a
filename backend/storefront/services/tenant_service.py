"""
Tenant and principal helpers.

WHY: Organizations, users and addresses are reference data for the core;
their invariants (role fixed at creation, org_id required for everyone but
SuperAdmin) are enforced in one place.

USAGE:
    from storefront.services.tenant_service import create_user, list_addresses

    user = create_user(email="a@acme.test", role="Admin", org_id=org.id)
    addresses = list_addresses(user.id)
"""

from __future__ import annotations

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Address, Organization, User
from ..permissions import Role
from .concurrency import transaction_scope


def create_organization(*, title: str, status: str = "active") -> Organization:
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required")

    with transaction_scope(db.session):
        org = Organization(title=title, status=status)
        db.session.add(org)
    return org


def validate_org_active(org_id: int) -> Organization:
    """
    Raises NotFoundError if the organization doesn't exist or is inactive.
    """
    org = db.session.get(Organization, org_id)
    if not org or org.status != "active":
        raise NotFoundError("Organization not found")
    return org


def create_user(
    *,
    email: str,
    role: str | Role,
    org_id: int | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
) -> User:
    """
    Create a principal.

    Role is set here and nowhere else. Non-SuperAdmin users must belong to
    an active organization; SuperAdmin may have none.
    """
    try:
        role = Role.parse(role)
    except ValueError as exc:
        raise ValidationError(str(exc))

    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")

    if role is not Role.SUPER_ADMIN:
        if org_id is None:
            raise ValidationError("org_id is required for non-SuperAdmin users")
        validate_org_active(org_id)

    if db.session.query(User.id).filter(User.email == email).first():
        raise ConflictError("A user with this email already exists")

    with transaction_scope(db.session):
        user = User(
            email=email,
            role=role.value,
            org_id=org_id,
            first_name=first_name,
            last_name=last_name,
        )
        db.session.add(user)
    return user


def create_address(*, user_id: int, kind: str, line1: str, city: str, **extra) -> Address:
    if kind not in {"shipping", "billing"}:
        raise ValidationError("kind must be shipping or billing")
    if not line1 or not city:
        raise ValidationError("line1 and city are required")

    allowed = {"line2", "state", "postal_code", "country"}
    with transaction_scope(db.session):
        address = Address(
            user_id=user_id,
            kind=kind,
            line1=line1,
            city=city,
            **{k: v for k, v in extra.items() if k in allowed},
        )
        db.session.add(address)
    return address


def list_addresses(user_id: int) -> list[Address]:
    return (
        db.session.query(Address)
        .filter(Address.user_id == user_id)
        .order_by(Address.id.asc())
        .all()
    )
