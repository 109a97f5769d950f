"""Connectivity checks, pod discovery and metrics for Kubernetes pods."""

__version__ = "3.4.20"