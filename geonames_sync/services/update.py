"""
Daily update workflow.

Stages run strictly in order and never go back:

    INIT -> DOWNLOAD_COUNTRY_INFO -> APPLY_MODIFICATIONS -> APPLY_DELETES
         -> TRIGGER_TRANSLATION_UPDATE -> CLEANUP -> DONE

A failing stage stops the run with UpdateError. Writes committed by earlier
stages are kept; the operator inspects and re-runs.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from loguru import logger

from geonames_sync.config import Settings
from geonames_sync.downloader import DownloadService
from geonames_sync.exceptions import UpdateError
from geonames_sync.kinds import EntityKind
from geonames_sync.services.supply import SupplyService
from geonames_sync.suppliers import SupplyResult
from geonames_sync.translations import TranslationUpdater


class UpdateStage(str, Enum):
    INIT = "init"
    DOWNLOAD_COUNTRY_INFO = "download_country_info"
    APPLY_MODIFICATIONS = "apply_modifications"
    APPLY_DELETES = "apply_deletes"
    TRIGGER_TRANSLATION_UPDATE = "trigger_translation_update"
    CLEANUP = "cleanup"
    DONE = "done"


@dataclass
class UpdateReport:
    """What a daily run did."""
    day: date
    completed: list[UpdateStage] = field(default_factory=list)
    skipped: list[UpdateStage] = field(default_factory=list)
    modifications: list[SupplyResult] = field(default_factory=list)
    deletes: list[SupplyResult] = field(default_factory=list)
    translations: int = 0


class UpdateWorkflow:
    """Sequence one daily update run."""

    def __init__(
        self,
        settings: Settings,
        download_service: DownloadService,
        supply_service: SupplyService,
        translation_updater: Optional[TranslationUpdater] = None,
        keep_files: bool = False,
        without_translations: bool = False,
    ):
        self.settings = settings
        self.policy = settings.geonames
        self.download_service = download_service
        self.supply_service = supply_service
        self.translation_updater = translation_updater
        self.keep_files = keep_files
        self.without_translations = without_translations

        self.stage = UpdateStage.INIT

    def run(self, day: Optional[date] = None) -> UpdateReport:
        """
        Run every stage.

        Args:
            day: Feed date, defaults to yesterday

        Raises:
            UpdateError: Wrapping the failure of the first failing stage
        """
        report = UpdateReport(day=day or self.download_service.daily_date())
        logger.info(f"Start daily updating for {report.day.isoformat()}")

        stages = [
            (UpdateStage.INIT, self.prepare),
            (UpdateStage.DOWNLOAD_COUNTRY_INFO, self.download_country_info),
            (UpdateStage.APPLY_MODIFICATIONS, self.apply_modifications),
            (UpdateStage.APPLY_DELETES, self.apply_deletes),
            (UpdateStage.TRIGGER_TRANSLATION_UPDATE, self.update_translations),
            (UpdateStage.CLEANUP, self.cleanup),
        ]

        for stage, action in stages:
            self.stage = stage
            if not self.should_run(stage):
                logger.info(f"Skipping stage {stage.value}")
                report.skipped.append(stage)
                continue

            logger.info(f"Running stage {stage.value}")
            try:
                action(report)
            except Exception as e:
                logger.error(f"Daily update stopped at stage {stage.value}: {e}")
                raise UpdateError(stage, e) from e
            report.completed.append(stage)

        self.stage = UpdateStage.DONE
        logger.info("Daily update had been completed")
        return report

    def should_run(self, stage: UpdateStage) -> bool:
        if stage is UpdateStage.DOWNLOAD_COUNTRY_INFO:
            return self.policy.is_enabled(EntityKind.COUNTRY)
        if stage is UpdateStage.TRIGGER_TRANSLATION_UPDATE:
            return (
                self.policy.translations
                and not self.without_translations
                and self.translation_updater is not None
            )
        if stage is UpdateStage.CLEANUP:
            return not self.keep_files
        return True

    def prepare(self, report: UpdateReport) -> None:
        self.settings.pipeline.directory.mkdir(parents=True, exist_ok=True)
        enabled = ", ".join(kind.plural for kind in self.policy.enabled_kinds())
        logger.info(f"Enabled entity kinds: {enabled or 'none'}")

    def download_country_info(self, report: UpdateReport) -> None:
        self.supply_service.add_country_info(self.download_service.download_country_info())

    def apply_modifications(self, report: UpdateReport) -> None:
        path = self.download_service.download_daily_modifications(report.day)
        report.modifications = self.supply_service.modify(path)

    def apply_deletes(self, report: UpdateReport) -> None:
        path = self.download_service.download_daily_deletes(report.day)
        report.deletes = self.supply_service.delete(path)

    def update_translations(self, report: UpdateReport) -> None:
        report.translations = self.translation_updater.update(report.day)

    def cleanup(self, report: UpdateReport) -> None:
        self.download_service.clean()
