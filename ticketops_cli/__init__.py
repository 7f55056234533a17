"""
TicketOps command line client.

Thin httpx wrapper around the TicketOps REST API with a TTL response cache.
"""

__version__ = "1.0.0"
