"""
Stone Trading Domain Enums

All enumeration types used across domain entities and the guard pipeline.
"""

from enum import Enum


class Role(str, Enum):
    """Canonical subject role used for authorization and audit"""

    ADMIN = "ADMIN"
    BUYER = "BUYER"
    SALES_REP = "SALES_REP"
    GUEST = "GUEST"


class AuditStatus(str, Enum):
    """Outcome recorded on an audit entry"""

    SUCCESS = "SUCCESS"
    FAILED_AUTH = "FAILED_AUTH"
    FAILED_VALIDATION = "FAILED_VALIDATION"
    FAILED_BUSINESS_RULE = "FAILED_BUSINESS_RULE"
    ERROR = "ERROR"
    WARNING = "WARNING"


class IdentifierType(str, Enum):
    """What a rate-limit row is keyed on"""

    user = "user"
    ip = "ip"


class QuotationStatus(str, Enum):
    """Quotation lifecycle"""

    draft = "draft"
    submitted = "submitted"
    adjustment_required = "adjustment_required"
    issued = "issued"
    approved = "approved"
    rejected = "rejected"


class OrderStatus(str, Enum):
    """Order fulfillment lifecycle"""

    draft = "draft"
    confirmed = "confirmed"
    dispatched = "dispatched"
    delivered = "delivered"
    cancelled = "cancelled"


class PaymentStatus(str, Enum):
    """Order payment lifecycle, driven only by admin-reviewed proofs"""

    pending = "pending"
    payment_in_progress = "payment_in_progress"
    fully_paid = "fully_paid"


class PaymentProofStatus(str, Enum):
    """Review state of a submitted payment proof"""

    pending = "pending"
    approved = "approved"
    rejected = "rejected"
