"""Snapshot validation package."""

from homebudget.validation.validator import SnapshotValidator

__all__ = ["SnapshotValidator"]
