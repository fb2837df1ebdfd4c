"""Certification voucher distribution service.

This package receives "winner selected" webhooks from the CRM, matches each
winner to the next upcoming class and an unused voucher, emails the voucher,
and records the distribution in the hosted data store.
"""

__version__ = "0.1.0"
__all__: list[str] = []
