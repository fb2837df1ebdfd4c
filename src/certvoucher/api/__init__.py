"""HTTP API subpackage for the voucher distribution service.

Exposes the CRM webhook, the administrative class/voucher/distribution
routes, statistics and health.
"""

__all__: list[str] = []
