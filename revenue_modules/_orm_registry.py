"""
Module ORM Registry (``revenue_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  ``create_tables()`` in the kernel calls this lazily, so the
kernel never imports module code at import time.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``revenue_modules``
packages and from ``revenue_kernel.db.engine`` (allowed: modules -> kernel).

Usage
-----
Entrypoints and ``tests/conftest.py`` call ``create_all_tables(engine)``.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Import every ``revenue_modules.*.orm`` module to register ORM models.

    Idempotent -- repeated calls are harmless.
    """
    # fmt: off
    import revenue_modules.allocation.orm  # noqa: F401
    import revenue_modules.bundles.orm  # noqa: F401
    import revenue_modules.disclosures.orm  # noqa: F401
    import revenue_modules.discounts.orm  # noqa: F401
    import revenue_modules.modifications.orm  # noqa: F401
    import revenue_modules.schedule.orm  # noqa: F401
    import revenue_modules.ssp.orm  # noqa: F401
    import revenue_modules.variable_consideration.orm  # noqa: F401
    # fmt: on


def create_all_tables(engine: Engine) -> None:
    """Register all module ORM models, then create every table.

    Postconditions:
        All module tables exist in the database bound to ``engine``.
    """
    from revenue_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(engine)
