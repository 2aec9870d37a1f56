"""
Role normalization and the RBAC permission table.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional

from .entities.enums import Role

# Raw stored role strings -> canonical roles
ROLE_MAP: Dict[str, Role] = {
    "admin": Role.ADMIN,
    "customer": Role.BUYER,
    "buyer": Role.BUYER,
    "employee": Role.SALES_REP,
    "sales_rep": Role.SALES_REP,
}


def normalize_role(raw_role: Optional[str]) -> Role:
    """Map a stored role string to a canonical Role; unknown or absent is GUEST."""
    if not raw_role or not isinstance(raw_role, str):
        return Role.GUEST
    return ROLE_MAP.get(raw_role.strip().lower(), Role.GUEST)


class Permission(str, Enum):
    approve_quotation = "approve_quotation"
    reject_quotation = "reject_quotation"
    view_own_quotations = "view_own_quotations"
    view_all_quotations = "view_all_quotations"
    submit_payment_proof = "submit_payment_proof"
    view_own_orders = "view_own_orders"
    manage_orders = "manage_orders"
    review_payments = "review_payments"
    view_analytics = "view_analytics"


ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.BUYER: frozenset(
        {
            Permission.approve_quotation,
            Permission.reject_quotation,
            Permission.view_own_quotations,
            Permission.submit_payment_proof,
            Permission.view_own_orders,
        }
    ),
    Role.SALES_REP: frozenset(
        {Permission.view_all_quotations, Permission.manage_orders}
    ),
    Role.ADMIN: frozenset(
        {
            Permission.view_all_quotations,
            Permission.manage_orders,
            Permission.review_payments,
            Permission.view_analytics,
        }
    ),
    Role.GUEST: frozenset(),
}


def has_permission(role: Role, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())
