"""Clinic Desk – patient, pharmacy and billing back office."""

__version__ = "0.7.0"
