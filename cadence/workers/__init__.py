"""
Workers Package
Background maintenance for lead cadences
"""
from cadence.workers.maintenance_worker import MaintenanceSweep, MaintenanceWorker

__all__ = [
    "MaintenanceSweep",
    "MaintenanceWorker",
]
