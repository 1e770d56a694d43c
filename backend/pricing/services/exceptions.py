"""
Error types raised by the pricing engine.

Any PricingError aborts the whole calculation it was raised from; callers
must not persist partial results.
"""

from typing import Optional


class PricingError(Exception):
    """Base exception for pricing related errors"""
    pass


class EntryNotFound(PricingError):
    """Raised when a line item references a catalog entry missing from the context"""

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"SKU not found: {entry_id}")


class PricingUndefined(PricingError):
    """Raised when an entry has neither an active curve nor a ladder"""

    def __init__(self, entry_id: Optional[str] = None, reason: str = "No pricing defined for SKU"):
        self.entry_id = entry_id
        super().__init__(f"{reason}: {entry_id}" if entry_id else reason)


class NoMatchingTier(PricingError):
    """Raised when a quantity falls outside every ladder tier"""

    def __init__(self, quantity):
        self.quantity = quantity
        super().__init__(f"No matching tier for qty {quantity}")


class ConfigurationError(PricingError):
    """Raised when there are issues with the pricing rules configuration"""
    pass


class ContextValidationError(PricingError):
    """Raised when a pricing context violates its invariants"""

    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__(f"Pricing context validation failed: {self.problems}")
