"""Orchestration services: full supply and the daily update workflow."""

from geonames_sync.services.supply import SupplyService
from geonames_sync.services.update import UpdateReport, UpdateStage, UpdateWorkflow

__all__ = [
    "SupplyService",
    "UpdateReport",
    "UpdateStage",
    "UpdateWorkflow",
]
