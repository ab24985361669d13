"""
Database models.
"""
from dumpster_admin.models.dumpster import Dumpster, DumpsterCondition, DumpsterStatus
from dumpster_admin.models.order import Order, OrderLineItem, OrderStatus, Priority
from dumpster_admin.models.payment import (
    ACTIVE_PAYMENT_STATUSES,
    TERMINAL_PAYMENT_STATUSES,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from dumpster_admin.models.quote import Quote, QuoteStatus
from dumpster_admin.models.sequence import NumberSequence
from dumpster_admin.models.service import Service, ServiceCategory, ServicePriceType

__all__ = [
    "Order",
    "OrderLineItem",
    "OrderStatus",
    "Priority",
    "Dumpster",
    "DumpsterStatus",
    "DumpsterCondition",
    "Payment",
    "PaymentStatus",
    "PaymentMethod",
    "ACTIVE_PAYMENT_STATUSES",
    "TERMINAL_PAYMENT_STATUSES",
    "Quote",
    "QuoteStatus",
    "NumberSequence",
    "Service",
    "ServiceCategory",
    "ServicePriceType",
]
