"""Kernel domain layer - clock and lifecycle value types."""
