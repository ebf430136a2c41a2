"""
Module: revenue_modules.discounts
Responsibility:
    Discount rules (PROP, RESIDUAL, TIERED, PROMO, PARTNER) and the record
    of their application to invoices ahead of allocation.
"""

from revenue_modules.discounts.models import (
    DiscountApplied,
    DiscountContext,
    DiscountKind,
    DiscountRule,
)
__all__ = [
    "DiscountApplied",
    "DiscountContext",
    "DiscountKind",
    "DiscountRule",
]
