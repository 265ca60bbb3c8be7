"""
Screenshot folder capture source
"""
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from tradecoach.core.exceptions import CaptureError
from tradecoach.core.interfaces import CaptureSource
from tradecoach.core.models import ScreenshotArtifact


class FolderCaptureSource(CaptureSource):
    """Latest image in a folder where the desktop capture tool saves screenshots."""

    def __init__(self, folder: str, extensions: Iterable[str] = (".png", ".jpg", ".jpeg")):
        self.folder = Path(folder).expanduser()
        self.extensions = {ext.lower() for ext in extensions}

    def latest(self) -> Optional[ScreenshotArtifact]:
        if not self.folder.exists():
            return None

        newest_path = None
        newest_mtime = None
        try:
            with os.scandir(self.folder) as entries:
                for entry in entries:
                    if not entry.is_file():
                        continue
                    if Path(entry.name).suffix.lower() not in self.extensions:
                        continue
                    mtime = entry.stat().st_mtime
                    if newest_mtime is None or mtime > newest_mtime:
                        newest_path, newest_mtime = entry.path, mtime
        except OSError as e:
            raise CaptureError(f"Cannot read {self.folder}: {e}") from e

        if newest_path is None:
            return None
        return ScreenshotArtifact(
            path=newest_path,
            modified_at=datetime.fromtimestamp(newest_mtime, tz=timezone.utc),
        )
