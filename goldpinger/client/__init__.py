"""HTTP client for a peer's ping, check and check-all endpoints."""

__all__ = ["operations"]