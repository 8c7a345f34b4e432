import logging
import os
from pathlib import Path

class HousekeepingService:
    """Service for cleaning up encoder leftovers from interrupted runs."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def cleanup_temp_files(self, directory: Path) -> int:
        """Recursively removes all .tmp files in the directory. Returns the number removed."""
        removed = 0
        if not directory.exists():
            return removed
        for root, dirs, files in os.walk(directory):
            for file in files:
                if file.endswith(".tmp"):
                    try:
                        (Path(root) / file).unlink()
                        removed += 1
                    except OSError as e:
                        self.logger.warning(f"Failed to remove stale temp file {file}: {e}")
        if removed:
            self.logger.info(f"Housekeeping: removed {removed} stale .tmp files under {directory}")
        return removed
