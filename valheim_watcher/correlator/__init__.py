"""Identity correlation between peers and characters."""
from .correlator import IdentityCorrelator, IdentitySnapshot

__all__ = ["IdentityCorrelator", "IdentitySnapshot"]
