"""
Revenue Kernel - shared primitives for the revenue allocation core.

- Declarative ORM base with UUID keys and audit columns
- Explicit engine / session / unit-of-work helpers
- Decimal money types and the single rounding primitive
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
- Injectable clock
"""

__version__ = "0.1.0"
