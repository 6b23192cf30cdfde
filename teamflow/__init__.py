"""Teamflow orchestrator: cross-store consistency for accounts, teams and tasks."""

__version__ = "1.0.0"
