"""Pure domain primitives shared by engines and modules."""

from revenue_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = ["Clock", "DeterministicClock", "SystemClock"]
