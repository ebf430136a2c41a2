"""
Typed Exception Hierarchy for the Revenue Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the allocation and modification engines must tell a missing
invoice apart from a change order in the wrong state without parsing
message strings.  Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA stored as attributes (ids, states, product keys)

The human-readable messages are stable too, because downstream tooling
and operators already know them ("Change order not found", "Change order
is not in DRAFT status", ...).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RevenueKernelError (base)
    |
    +-- EntityNotFoundError                     -> boundary maps to 404
    |   +-- InvoiceNotFoundError
    |   +-- ChangeOrderNotFoundError
    |   +-- SspChangeNotFoundError
    |   +-- SspEntryNotFoundError
    |   +-- PobNotFoundError
    |   +-- DiscountRuleNotFoundError
    |   +-- BundleNotFoundError
    |
    +-- InvalidStateError                       -> 409
    |   +-- ChangeOrderNotDraftError
    |   +-- SspChangeNotApprovedError
    |   +-- PobClosedError
    |
    +-- MissingConfigurationError               -> 422
    |   +-- SspPolicyNotConfiguredError
    |   +-- SspNotFoundError
    |
    +-- UnknownVariantError                     -> 400
    |   +-- UnknownStrategyError
    |   +-- UnknownTreatmentError
    |   +-- UnknownDiscountKindError
    |   +-- UnknownRecognitionMethodError
    |   +-- UnknownSspMethodError
    |   +-- UnknownVcMethodError
    |
    +-- TreatmentNotImplementedError            -> 501
    |
    +-- ValidationError                         -> 400

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
NotFound        | INVOICE_NOT_FOUND             | Invoice source returned nothing
                | CHANGE_ORDER_NOT_FOUND        | Missing or other company's change order
                | SSP_CHANGE_NOT_FOUND          | SSP change request id unknown
                | SSP_ENTRY_NOT_FOUND           | SSP catalog entry id unknown
                | POB_NOT_FOUND                 | Performance obligation id unknown
                | DISCOUNT_RULE_NOT_FOUND       | Discount rule id unknown
                | BUNDLE_NOT_FOUND              | Bundle id unknown
----------------|-------------------------------|---------------------------------------
InvalidState    | CHANGE_ORDER_NOT_DRAFT        | Applying a non-DRAFT change order
                | SSP_CHANGE_NOT_APPROVED       | Reallocating from a non-APPROVED change
                | POB_CLOSED                    | Mutating a CLOSED obligation
----------------|-------------------------------|---------------------------------------
MissingConfig   | SSP_POLICY_NOT_CONFIGURED     | Allocation without a company policy
                | SSP_NOT_FOUND                 | No effective SSP for an invoice line
----------------|-------------------------------|---------------------------------------
UnknownVariant  | UNKNOWN_STRATEGY              | Allocation strategy string not known
                | UNKNOWN_TREATMENT             | Change order treatment not known
                | UNKNOWN_DISCOUNT_KIND         | Discount kind not known
                | UNKNOWN_RECOGNITION_METHOD    | Recognition method not known
                | UNKNOWN_SSP_METHOD            | SSP method / evidence source not known
                | UNKNOWN_VC_METHOD             | VC estimation method not known
----------------|-------------------------------|---------------------------------------
NotImplemented  | TREATMENT_NOT_IMPLEMENTED     | TERMINATION_NEW treatment requested
----------------|-------------------------------|---------------------------------------
Validation      | VALIDATION_ERROR              | Malformed input (currency, params, ...)

===============================================================================
"""


class RevenueKernelError(Exception):
    """
    Base exception for all revenue kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "REVENUE_KERNEL_ERROR"


# Not found


class EntityNotFoundError(RevenueKernelError):
    """Referenced entity is missing or not owned by the calling company."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity: str, entity_id: object, message: str | None = None):
        self.entity = entity
        self.entity_id = str(entity_id)
        super().__init__(message or f"{entity} not found")


class InvoiceNotFoundError(EntityNotFoundError):
    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: object):
        super().__init__("Invoice", invoice_id)


class ChangeOrderNotFoundError(EntityNotFoundError):
    code: str = "CHANGE_ORDER_NOT_FOUND"

    def __init__(self, change_order_id: object):
        super().__init__("Change order", change_order_id)


class SspChangeNotFoundError(EntityNotFoundError):
    code: str = "SSP_CHANGE_NOT_FOUND"

    def __init__(self, change_id: object):
        super().__init__("SSP change request", change_id)


class SspEntryNotFoundError(EntityNotFoundError):
    code: str = "SSP_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: object):
        super().__init__("SSP catalog entry", entry_id)


class PobNotFoundError(EntityNotFoundError):
    code: str = "POB_NOT_FOUND"

    def __init__(self, pob_id: object):
        super().__init__("POB", pob_id)


class DiscountRuleNotFoundError(EntityNotFoundError):
    code: str = "DISCOUNT_RULE_NOT_FOUND"

    def __init__(self, rule_id: object):
        super().__init__("Discount rule", rule_id)


class BundleNotFoundError(EntityNotFoundError):
    code: str = "BUNDLE_NOT_FOUND"

    def __init__(self, bundle_id: object):
        super().__init__("Bundle", bundle_id)


# Invalid state


class InvalidStateError(RevenueKernelError):
    """Operation attempted against an entity in the wrong lifecycle state."""

    code: str = "INVALID_STATE"


class ChangeOrderNotDraftError(InvalidStateError):
    """Change orders are applied exactly once; APPLIED is terminal."""

    code: str = "CHANGE_ORDER_NOT_DRAFT"

    def __init__(self, change_order_id: object, status: str):
        self.change_order_id = str(change_order_id)
        self.status = status
        super().__init__("Change order is not in DRAFT status")


class SspChangeNotApprovedError(InvalidStateError):
    """Reallocation only runs from an APPROVED change owned by the company."""

    code: str = "SSP_CHANGE_NOT_APPROVED"

    def __init__(self, change_id: object):
        self.change_id = str(change_id)
        super().__init__("SSP change not found or not approved")


class PobClosedError(InvalidStateError):
    code: str = "POB_CLOSED"

    def __init__(self, pob_id: object):
        self.pob_id = str(pob_id)
        super().__init__(f"POB {pob_id} is CLOSED")


# Missing configuration


class MissingConfigurationError(RevenueKernelError):
    """Required SSP entry or policy absent for the chosen strategy."""

    code: str = "MISSING_CONFIGURATION"


class SspPolicyNotConfiguredError(MissingConfigurationError):
    code: str = "SSP_POLICY_NOT_CONFIGURED"

    def __init__(self, company_id: object):
        self.company_id = str(company_id)
        super().__init__("SSP policy not configured")


class SspNotFoundError(MissingConfigurationError):
    code: str = "SSP_NOT_FOUND"

    def __init__(self, product_id: str, currency: str | None = None):
        self.product_id = product_id
        self.currency = currency
        super().__init__(f"No SSP found for product {product_id}")


# Unknown variant


class UnknownVariantError(RevenueKernelError):
    """Caller supplied a strategy/treatment/kind string not in the known set."""

    code: str = "UNKNOWN_VARIANT"


class UnknownStrategyError(UnknownVariantError):
    code: str = "UNKNOWN_STRATEGY"

    def __init__(self, strategy: object):
        self.strategy = str(strategy)
        super().__init__(f"Unknown allocation strategy: {strategy}")


class UnknownTreatmentError(UnknownVariantError):
    code: str = "UNKNOWN_TREATMENT"

    def __init__(self, treatment: object):
        self.treatment = str(treatment)
        super().__init__(f"Unknown treatment type: {treatment}")


class UnknownDiscountKindError(UnknownVariantError):
    code: str = "UNKNOWN_DISCOUNT_KIND"

    def __init__(self, kind: object):
        self.kind = str(kind)
        super().__init__(f"Unknown discount kind: {kind}")


class UnknownRecognitionMethodError(UnknownVariantError):
    code: str = "UNKNOWN_RECOGNITION_METHOD"

    def __init__(self, method: object):
        self.method = str(method)
        super().__init__(f"Unknown recognition method: {method}")


class UnknownSspMethodError(UnknownVariantError):
    code: str = "UNKNOWN_SSP_METHOD"

    def __init__(self, method: object):
        self.method = str(method)
        super().__init__(f"Unknown SSP method: {method}")


class UnknownVcMethodError(UnknownVariantError):
    code: str = "UNKNOWN_VC_METHOD"

    def __init__(self, method: object):
        self.method = str(method)
        super().__init__(f"Unknown VC method: {method}")


# Not implemented


class TreatmentNotImplementedError(RevenueKernelError):
    """
    Treatment is recognised but has no business logic yet.

    Raised instead of a silent no-op so callers and tests can detect it.
    """

    code: str = "TREATMENT_NOT_IMPLEMENTED"

    def __init__(self, treatment: str):
        self.treatment = treatment
        super().__init__(f"Treatment {treatment} is not implemented")


# Validation


class ValidationError(RevenueKernelError):
    """Input failed a boundary validation check."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)
