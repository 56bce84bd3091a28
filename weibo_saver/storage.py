"""
Local storage for saved posts.

Records are written under a dated tree::

    <base>/<YYYY>/<MM>/<YYYY-MM-DD>/
        <record>.md
        images/
        videos/

Markdown files never overwrite each other; a numeric suffix is appended when
the stem is already taken.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

import aiofiles

from .config import SaverConfig, get_config
from .errors import StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoragePaths:
    base: Path
    year: Path
    month: Path
    date: Path
    images: Path
    videos: Path


class StorageManager:
    """Creates the dated directory tree and writes records into it."""

    def __init__(
        self,
        base_path: Optional[Union[str, Path]] = None,
        clock: Callable[[], datetime] = datetime.now,
        config: Optional[SaverConfig] = None,
    ):
        if base_path is None:
            base_path = (config or get_config()).storage_base_path
        self.base_path = Path(base_path)
        self.clock = clock

    def create_directory_structure(self) -> StoragePaths:
        """
        Create today's directories if missing.

        Raises:
            StorageError: a directory could not be created
        """
        now = self.clock()
        year = self.base_path / f"{now.year:04d}"
        month = year / f"{now.month:02d}"
        date = month / now.strftime('%Y-%m-%d')
        paths = StoragePaths(
            base=self.base_path,
            year=year,
            month=month,
            date=date,
            images=date / 'images',
            videos=date / 'videos'
        )

        try:
            for directory in (paths.images, paths.videos):
                if not directory.exists():
                    directory.mkdir(parents=True, exist_ok=True)
                    logger.info(f"Created directory: {directory}")
        except OSError as e:
            raise StorageError(f"Cannot create directory structure under {self.base_path}: {e}",
                               {"base_path": str(self.base_path)}) from e

        return paths

    @staticmethod
    def generate_unique_filename(directory: Union[str, Path], stem: str, extension: str = '.md') -> str:
        """Return ``stem + extension``, or ``stem-N + extension`` for the first unused N."""
        directory = Path(directory)
        filename = f"{stem}{extension}"
        counter = 1
        while (directory / filename).exists():
            filename = f"{stem}-{counter}{extension}"
            counter += 1
        return filename

    async def save_text(self, path: Union[str, Path], content: str) -> Path:
        """
        Write a UTF-8 text file.

        Raises:
            StorageError: the file could not be written
        """
        path = Path(path)
        try:
            async with aiofiles.open(path, 'w', encoding='utf-8') as f:
                await f.write(content)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}", {"path": str(path)}) from e

        logger.info(f"Saved {path}")
        return path
