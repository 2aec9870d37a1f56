"""
Quotation Use Cases

Buyer decisions on issued quotations.
"""

from .approve_quotation_use_case import ApprovalResult, ApproveQuotationUseCase
from .reject_quotation_use_case import RejectQuotationUseCase
from .get_quotation_use_case import GetQuotationUseCase

__all__ = [
    "ApprovalResult",
    "ApproveQuotationUseCase",
    "RejectQuotationUseCase",
    "GetQuotationUseCase",
]
