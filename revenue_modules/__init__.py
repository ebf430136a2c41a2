"""
Revenue Modules.

Session-holding orchestration over the revenue kernel and the pure
engines.  Each module contains:
- Domain models (frozen DTOs and enums)
- ORM models (tables, ``to_dto`` conversion)
- A service owning the transaction boundary of its operations

Modules:
- ssp: SSP catalog, evidence, policy, corridor checks, SSP change requests
- discounts: discount rules and applications
- bundles: bundle catalog and bundle-line expansion
- allocation: invoice allocation, POBs, allocation audit, reallocation
- variable_consideration: VC policy and constrained estimates
- schedule: recognition schedule builder
- modifications: change orders, treatments, schedule revisions
- disclosures: modification register, VC rollforward, RPO snapshot

Collaborator ports live in ``revenue_modules.collaborators``.
"""
