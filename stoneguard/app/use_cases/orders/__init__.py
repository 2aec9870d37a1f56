"""
Order Use Cases

Payment proofs and fulfillment.
"""

from .submit_payment_proof_use_case import PaymentSubmission, SubmitPaymentProofUseCase
from .review_payment_proof_use_case import (
    ApprovePaymentProofUseCase,
    RejectPaymentProofUseCase,
)
from .update_order_status_use_case import UpdateOrderStatusUseCase
from .get_order_use_case import GetOrderUseCase

__all__ = [
    "PaymentSubmission",
    "SubmitPaymentProofUseCase",
    "ApprovePaymentProofUseCase",
    "RejectPaymentProofUseCase",
    "UpdateOrderStatusUseCase",
    "GetOrderUseCase",
]
