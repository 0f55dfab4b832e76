"""Payment management module for RentFlow.

Payment reconciliation, the monthly billing sweep and landlord notifications.
"""

from .models import (
    BillingCharge,
    Notification,
    NotificationSeverity,
    NotificationType,
    Payment,
    PaymentChannel,
    PaymentType,
)
from .schemas import (
    GatewayCallbackPayment,
    PaymentAnalysis,
    PaymentOutcome,
    PaymentSource,
    SimulatedPayment,
    SweepResult,
)

__all__ = [
    # Models
    "BillingCharge",
    "Notification",
    "NotificationSeverity",
    "NotificationType",
    "Payment",
    "PaymentChannel",
    "PaymentType",
    # Schemas
    "GatewayCallbackPayment",
    "PaymentAnalysis",
    "PaymentOutcome",
    "PaymentSource",
    "SimulatedPayment",
    "SweepResult",
]
