"""
Saving and loading raw import results.

A saved import is the JSON form of an ImportResult: one entry per source
with its status and raw records. It lets the merge step be re-run offline.
"""

import json
from pathlib import Path
from typing import Any, Dict

from .config import ALL_SOURCES
from .models import ImportResult, STATUS_ERROR, STATUS_NEEDS_LOGIN, STATUS_SUCCESS


class RawLoadError(Exception):
    """Raised when a saved import cannot be loaded."""
    pass


VALID_STATUSES = [STATUS_SUCCESS, STATUS_NEEDS_LOGIN, STATUS_ERROR]


def save_import_result(result: ImportResult, output_path: str, force: bool = False) -> Path:
    """
    Write an import result as JSON.

    Args:
        result: Import result to save
        output_path: Destination file
        force: Whether to overwrite an existing file

    Returns:
        Absolute path of the written file

    Raises:
        RawLoadError: If the file exists and force is False, or writing fails
    """
    path = Path(output_path)
    if path.exists() and not force:
        raise RawLoadError(f"Output file already exists: {path}. Use --force to overwrite.")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)
        return path.absolute()
    except Exception as e:
        raise RawLoadError(f"Failed to write import file: {e}")


class RawImportLoader:
    """
    Loads a saved import result.

    Expected format:
        {
          "report-grid": {"source": "report-grid", "status": "success", "data": [...]},
          "tickets": {"source": "tickets", "status": "error", "data": [], "error": "..."}
        }
    """

    def __init__(self, file_path: str):
        """
        Initialize the loader.

        Raises:
            RawLoadError: If the file doesn't exist
        """
        self.file_path = Path(file_path)
        if not self.file_path.exists():
            raise RawLoadError(f"Import file not found: {file_path}")

    def load(self) -> ImportResult:
        """
        Load and validate the saved import.

        Raises:
            RawLoadError: If the file is not valid JSON or has the wrong shape
        """
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise RawLoadError(f"Invalid JSON in {self.file_path}: {e}")
        except Exception as e:
            raise RawLoadError(f"Failed to load import file: {e}")

        self._validate(data)
        return ImportResult.from_dict(data)

    def _validate(self, data: Any):
        if not isinstance(data, dict) or not data:
            raise RawLoadError("Import file must contain an object keyed by source name")

        for name, entry in data.items():
            self._validate_entry(name, entry)

    def _validate_entry(self, name: str, entry: Dict[str, Any]):
        if name not in ALL_SOURCES:
            raise RawLoadError(f"Unknown source '{name}' (expected one of: {', '.join(ALL_SOURCES)})")
        if not isinstance(entry, dict):
            raise RawLoadError(f"Entry for '{name}' must be an object")
        if entry.get('source') != name:
            raise RawLoadError(f"Entry for '{name}' has mismatched source {entry.get('source')!r}")
        if entry.get('status') not in VALID_STATUSES:
            raise RawLoadError(f"Entry for '{name}' has invalid status {entry.get('status')!r}")
        if not isinstance(entry.get('data', []), list):
            raise RawLoadError(f"Entry for '{name}' has non-list data")


def load_import_result(file_path: str) -> ImportResult:
    """
    Convenience function to load a saved import.

    Raises:
        RawLoadError: If loading fails
    """
    return RawImportLoader(file_path).load()
