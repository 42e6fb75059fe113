"""
File management service for generated media.

Video and narration audio are too large to keep as data URLs, so they are
written under a per-item directory and exposed as file URIs. Clearing
history deletes these directories, which revokes the assets.
"""
import logging
import shutil
from pathlib import Path

from omnipedia.config import settings

logger = logging.getLogger(__name__)


class FileManager:
    """
    Manage filesystem artifacts for generation items.

    Layout:
    - {base_dir}/{item_id}/video.mp4 - Animated assembly video
    - {base_dir}/{item_id}/narration.wav - Narration audio

    Implements path traversal protection to prevent directory escape attacks.
    """

    def __init__(self, base_dir: str | Path | None = None):
        """
        Initialize FileManager with base directory.

        Args:
            base_dir: Root directory for all item artifacts.
                     If None, uses settings.storage.tmp_dir
        """
        if base_dir is None:
            base_dir = settings.storage.tmp_dir

        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _resolve_item_dir(self, item_id: str) -> Path:
        item_dir = (self.base_dir / str(item_id)).resolve()

        if not item_dir.is_relative_to(self.base_dir) or item_dir == self.base_dir:
            raise ValueError("Invalid item path")

        return item_dir

    def get_item_dir(self, item_id: str) -> Path:
        """
        Get or create the directory for an item.

        Raises:
            ValueError: If item_id resolves outside base_dir (traversal attack)
        """
        item_dir = self._resolve_item_dir(item_id)
        item_dir.mkdir(exist_ok=True)
        return item_dir

    def _save(self, item_id: str, filename: str, data: bytes) -> Path:
        filepath = self.get_item_dir(item_id) / filename
        filepath.write_bytes(data)
        logger.debug("Saved %d bytes to %s", len(data), filepath)
        return filepath

    def save_video(self, item_id: str, data: bytes) -> Path:
        """Save the MP4 produced by the video stage."""
        return self._save(item_id, "video.mp4", data)

    def save_audio(self, item_id: str, data: bytes) -> Path:
        """Save the WAV produced by the narration stage."""
        return self._save(item_id, "narration.wav", data)

    def resolve_asset(self, item_id: str, filename: str) -> Path | None:
        """Return the path of a saved asset, or None if it does not exist."""
        try:
            item_dir = self._resolve_item_dir(item_id)
        except ValueError:
            return None
        path = (item_dir / filename).resolve()
        if not path.is_relative_to(item_dir) or not path.is_file():
            return None
        return path

    def delete_item_assets(self, item_id: str) -> bool:
        """
        Delete every saved asset for an item.

        Returns:
            True if a directory was removed, False if there was nothing to remove.
        """
        item_dir = self._resolve_item_dir(item_id)
        if not item_dir.exists():
            return False
        shutil.rmtree(item_dir)
        logger.info("Deleted assets for item %s", item_id)
        return True
