"""
Download GeoNames source files into the staging directory.

Downloader fetches one Resource and unpacks it when it is a zip archive.
DownloadService knows the names of the GeoNames dump files and feeds.
"""

import shutil
import zipfile
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import httpx
from loguru import logger

from geonames_sync.config import Settings
from geonames_sync.exceptions import DownloadError
from geonames_sync.kinds import EntityKind
from geonames_sync.reader import CONTINENT_CODES_FILE
from geonames_sync.utils.http import stream_download


# Rows without a country code (continents, oceans, ...)
NO_COUNTRY_ARCHIVE = "no-country.zip"

# Staged files that clean() leaves in place
KEEP_ON_CLEAN = frozenset({CONTINENT_CODES_FILE.name})


@dataclass(frozen=True)
class Resource:
    """
    A remote file.

    For archive="zip", member names the file to extract; it defaults to the
    archive name with a .txt suffix (allCountries.zip -> allCountries.txt).
    """
    url: str
    filename: str
    archive: Optional[str] = None
    member: Optional[str] = None

    @property
    def extracted_name(self) -> str:
        if self.archive is None:
            return self.filename
        return self.member or Path(self.filename).with_suffix(".txt").name


class Downloader:
    """Fetch resources into a local directory."""

    def __init__(self, settings: Settings, client: Optional[httpx.Client] = None):
        self.settings = settings
        self.directory = settings.pipeline.directory
        self.client = client

    def download(self, resource: Resource, force: bool = False) -> Path:
        """
        Download a resource and return the path of the readable file.

        Args:
            resource: What to fetch
            force: Re-download even if a local copy exists

        Returns:
            Path to the downloaded file, or to the extracted member for archives

        Raises:
            DownloadError: If the resource is unreachable or the archive is corrupt
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.directory / resource.extracted_name

        if target.exists() and not force:
            logger.info(f"Using existing file: {target}")
            return target

        path = stream_download(
            url=resource.url,
            dest_path=self.directory / resource.filename,
            timeout=self.settings.pipeline.http_timeout,
            max_retries=self.settings.pipeline.http_max_retries,
            retry_delay=self.settings.pipeline.http_retry_delay,
            client=self.client,
        )

        if resource.archive == "zip":
            return self._unzip(path, resource.extracted_name)
        return path

    def _unzip(self, archive_path: Path, member: str) -> Path:
        logger.info(f"Extracting {member} from {archive_path}...")
        target = self.directory / member
        part_path = target.with_name(target.name + ".part")

        try:
            with zipfile.ZipFile(archive_path, "r") as zf:
                if member not in zf.namelist():
                    raise DownloadError(f"Archive {archive_path.name} has no member {member}")
                bad = zf.testzip()
                if bad is not None:
                    raise DownloadError(f"Archive {archive_path.name} is corrupt at {bad}")
                with zf.open(member) as src, open(part_path, "wb") as dst:
                    shutil.copyfileobj(src, dst)
            part_path.replace(target)
        except zipfile.BadZipFile as e:
            raise DownloadError(f"Archive {archive_path.name} is corrupt: {e}") from e
        finally:
            # Only a fully extracted member may be reused by the next run
            part_path.unlink(missing_ok=True)
            archive_path.unlink(missing_ok=True)

        return target


class DownloadService:
    """Names of the GeoNames dump files and daily feeds."""

    def __init__(self, settings: Settings, downloader: Downloader):
        self.settings = settings
        self.downloader = downloader
        self.base_url = settings.pipeline.base_url
        self.directory = settings.pipeline.directory

    def _resource(self, filename: str) -> Resource:
        archive = "zip" if filename.endswith(".zip") else None
        return Resource(url=f"{self.base_url}{filename}", filename=filename, archive=archive)

    def download_main_source(self, force: bool = False) -> list[Path]:
        """
        Download the main dump.

        With a country allow-list only the per-country files are fetched
        (e.g. IT.zip), otherwise the full allCountries.zip. Rows without a
        country code, continents among them, are published only in
        allCountries.zip and no-country.zip, so the latter is added to the
        per-country files when continents are enabled.
        """
        policy = self.settings.geonames
        if policy.countries_filter:
            filenames = [f"{code}.zip" for code in policy.countries_filter]
            if policy.is_enabled(EntityKind.CONTINENT):
                filenames.insert(0, NO_COUNTRY_ARCHIVE)
        else:
            filenames = ["allCountries.zip"]
        return [self.downloader.download(self._resource(name), force=force) for name in filenames]

    def download_country_info(self) -> Path:
        # Small, and refreshed on every run
        return self.downloader.download(self._resource("countryInfo.txt"), force=True)

    def download_daily_modifications(self, day: date) -> Path:
        return self.downloader.download(self._resource(f"modifications-{day.isoformat()}.txt"))

    def download_daily_deletes(self, day: date) -> Path:
        return self.downloader.download(self._resource(f"deletes-{day.isoformat()}.txt"))

    def download_alternate_names_modifications(self, day: date) -> Path:
        return self.downloader.download(self._resource(f"alternateNamesModifications-{day.isoformat()}.txt"))

    def download_alternate_names_deletes(self, day: date) -> Path:
        return self.downloader.download(self._resource(f"alternateNamesDeletes-{day.isoformat()}.txt"))

    @staticmethod
    def daily_date() -> date:
        """GeoNames publishes the feed of the previous day."""
        return (datetime.now(timezone.utc) - timedelta(days=1)).date()

    def clean(self) -> int:
        """Remove staged files, keeping the directory and operator-provided tables."""
        if not self.directory.exists():
            return 0

        removed = 0
        for path in self.directory.iterdir():
            if path.is_file() and path.name not in KEEP_ON_CLEAN:
                path.unlink()
                removed += 1

        logger.info(f"Removed {removed} staged files from {self.directory}")
        return removed
