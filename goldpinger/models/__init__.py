"""Result documents exchanged between instances, with JSON and validation."""

__all__ = ["results", "aggregates"]