"""Serials already written to an output CSV, used to skip known devices."""
import csv
import logging
from pathlib import Path

from abm_errors import OutputError

logger = logging.getLogger(__name__)


class SyncLedger:
    """
    Known serials for a single output file.

    Built once from column 1 of the existing CSV. Serials written during the
    run are added as well, so a device reported twice is only written once.
    """

    def __init__(self, path, serials=(), existed=False):
        self.path = Path(path)
        self.existed = existed
        self._serials = set(serials)

    @classmethod
    def load(cls, path, header_serial):
        path = Path(path)
        if not path.is_file():
            logger.info("No existing file found, will create: %s", path)
            return cls(path, existed=False)

        serials = set()
        try:
            with open(path, newline='') as f:
                for row in csv.reader(f):
                    if not row:
                        continue
                    serial = row[0].replace('"', '').strip()
                    if serial and serial != header_serial:
                        serials.add(serial)
        except (OSError, csv.Error) as e:
            raise OutputError(f"Failed reading existing file {path}: {e}") from e

        logger.info("Existing file detected: %s", path)
        logger.info("%d known serials loaded, will append new devices only", len(serials))
        return cls(path, serials, existed=True)

    def __contains__(self, serial):
        return serial in self._serials

    def __len__(self):
        return len(self._serials)

    def add(self, serial):
        self._serials.add(serial)
