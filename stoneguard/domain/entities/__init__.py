"""
Stone Trading Domain Entities

All domain entities organized by model.
Each entity in its own file for better maintainability.
"""

# Export all enums
from .enums import (
    AuditStatus,
    IdentifierType,
    OrderStatus,
    PaymentProofStatus,
    PaymentStatus,
    QuotationStatus,
    Role,
)

# Export all entities
from .user import User
from .stone import Stone
from .quotation import Quotation
from .order import Order
from .payment_proof import PaymentProof
from .audit_log import AuditLog, AuditLogImmutableError
from .rate_limit_tracking import RateLimitTracking
from .session_activity import SessionActivity

__all__ = [
    # Enums
    "AuditStatus",
    "IdentifierType",
    "OrderStatus",
    "PaymentProofStatus",
    "PaymentStatus",
    "QuotationStatus",
    "Role",
    # Entities
    "User",
    "Stone",
    "Quotation",
    "Order",
    "PaymentProof",
    "AuditLog",
    "AuditLogImmutableError",
    "RateLimitTracking",
    "SessionActivity",
]
