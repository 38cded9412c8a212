"""Per-folder media metadata records stored as JSON files."""
import json
import logging
import re
from pathlib import Path

from .models import MediaMetadata
from .paths import to_posix

log = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r'[/\\:?*|<>"]')


def metadata_file_name(folder_path: str) -> str:
    """File name of the record for *folder_path* (canonical form)."""
    return _UNSAFE_CHARS_RE.sub('_', to_posix(folder_path)) + ".json"


class MetadataStore:
    """Reads and writes one metadata record per managed media folder."""

    def __init__(self, metadata_dir: Path):
        """
        Initialize the store.

        Args:
            metadata_dir: Directory holding the record files.
        """
        self.metadata_dir = metadata_dir

    def file_path(self, folder_path: str) -> Path:
        return self.metadata_dir / metadata_file_name(folder_path)

    def exists(self, folder_path: str) -> bool:
        """Return True if *folder_path* is a managed folder."""
        try:
            return self.file_path(folder_path).is_file()
        except ValueError:
            return False

    def read(self, folder_path: str) -> MediaMetadata:
        """
        Load the record for *folder_path*.

        Raises:
            FileNotFoundError: if the folder is not managed
            ValueError: if the record is not valid JSON or misses keys
        """
        path = self.file_path(folder_path)
        with open(path, 'r', encoding='utf-8') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid metadata file {path}: {e}") from e
        try:
            return MediaMetadata.from_dict(data)
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid metadata file {path}: missing {e}") from e

    def write(self, metadata: MediaMetadata) -> Path:
        """
        Persist *metadata*, replacing any existing record.

        Raises:
            OSError: if the record cannot be written
        """
        self.metadata_dir.mkdir(parents=True, exist_ok=True)
        path = self.file_path(metadata.media_folder_path)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(metadata.to_dict(), f, indent=2, ensure_ascii=False)
        tmp_path.replace(path)
        log.debug("Wrote metadata for %s to %s", metadata.media_folder_path, path)
        return path
