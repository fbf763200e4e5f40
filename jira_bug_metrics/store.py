"""Output directory of an extraction run.

Layout::

    <directory>/config.json
    <directory>/periods/<periodId>.json

Every run regenerates the directory wholesale; readers only ever see
complete snapshots.
"""

import json
import logging
import os

from .merger import merge_period_data

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.json"
PERIODS_DIRECTORY = "periods"


class StoreError(Exception):
    """A snapshot file is missing or cannot be parsed."""


class DashboardStore:
    """Read and write the JSON snapshots consumed by the dashboard."""

    def __init__(self, directory):
        self.directory = directory
        self.periods_directory = os.path.join(directory, PERIODS_DIRECTORY)

    @property
    def config_path(self):
        return os.path.join(self.directory, CONFIG_FILE)

    def period_path(self, period_id):
        return os.path.join(self.periods_directory, f"{period_id}.json")

    def prepare(self):
        os.makedirs(self.periods_directory, exist_ok=True)

    def purge(self):
        """Remove the period snapshots of a previous run."""
        if not os.path.isdir(self.periods_directory):
            return 0

        removed = 0
        for name in os.listdir(self.periods_directory):
            if name.endswith(".json"):
                os.remove(os.path.join(self.periods_directory, name))
                removed += 1

        logger.debug("Removed %d old period files", removed)
        return removed

    def _write(self, path, data):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        logger.info("Saved %s", path)
        return path

    def write_period(self, data):
        self.prepare()
        return self._write(self.period_path(data["periodId"]), data)

    def write_config(self, config):
        self.prepare()
        return self._write(self.config_path, config)

    def _read(self, path):
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            raise StoreError(f"File not found: {path}") from None
        except (OSError, ValueError) as e:
            raise StoreError(f"Could not read {path}: {e}") from e

    def load_config(self):
        return self._read(self.config_path)

    def load_period(self, period_id):
        return self._read(self.period_path(period_id))

    def load_grouped_period(self, source_ids):
        """Load several periods and merge them into one snapshot.

        Periods without a file (skipped because they had no bugs) are left
        out of the merge, so the merged ``periodId`` and dates come from the
        files found and can be narrower than the group asked for.

        Raises:
            StoreError: If none of the periods has a file
        """
        periods_data = []
        for period_id in source_ids:
            if not os.path.exists(self.period_path(period_id)):
                logger.debug("No data file for %s, skipping", period_id)
                continue
            periods_data.append(self.load_period(period_id))

        if not periods_data:
            raise StoreError(f"No data for periods: {', '.join(source_ids)}")

        return merge_period_data(periods_data)
