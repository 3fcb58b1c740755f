"""
Core services for the application.

This package contains the vital-signs simulator and the storage
collaborators it persists samples through.
"""

from .simulator import VitalSignsSimulator
from .storage import (
    HealthMetricsStorage,
    InMemoryHealthMetricsStorage,
    SQLiteHealthMetricsStorage,
    create_storage,
)

__all__ = [
    "VitalSignsSimulator",
    "HealthMetricsStorage",
    "InMemoryHealthMetricsStorage",
    "SQLiteHealthMetricsStorage",
    "create_storage",
]
