"""Move user records between two Auth0 tenants through bulk export/import jobs."""

__version__ = "0.3.0"
