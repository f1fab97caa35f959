"""Cadence - task and calendar scheduling automation."""

__version__ = "0.1.0"
