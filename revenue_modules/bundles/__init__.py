"""
Module: revenue_modules.bundles
Responsibility:
    Bundle catalog (effective-dated SKUs with weighted components) and
    the expansion of bundle invoice lines ahead of allocation.
"""

from revenue_modules.bundles.models import Bundle, BundleComponent, BundleStatus
__all__ = [
    "Bundle",
    "BundleComponent",
    "BundleStatus",
]
