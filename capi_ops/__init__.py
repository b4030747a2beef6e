"""Operator actions for Cluster API managed clusters."""

__version__ = "0.1.0"
