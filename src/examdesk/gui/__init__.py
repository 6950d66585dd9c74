"""Qt integration for the data core (requires the ``gui`` extra)."""

from .signals import StoreSignals

__all__ = ["StoreSignals"]
