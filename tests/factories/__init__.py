"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation.
"""

from .contact import ContactFactory, InactiveContactFactory, CashbackContactFactory

__all__ = [
    "ContactFactory",
    "InactiveContactFactory",
    "CashbackContactFactory",
]
