"""
File Utilities Module
Reading capture payloads and writing summaries and calibration settings as JSON.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from layout_core.errors import InputError
from layout_core.models import LayoutSummary, RawElement, Viewport
from layout_core.raw_tree import parse_capture

logger = logging.getLogger(__name__)

CAPTURE_EXTENSIONS = ('.json',)


def normalize_path(path: Union[str, Path]) -> Path:
    """Convert string path to normalized Path object."""
    return Path(path).resolve()


def is_hidden(path: Path) -> bool:
    return path.name.startswith('.')


def ensure_directory(directory: Path) -> None:
    """Ensure directory exists, create if necessary."""
    directory.mkdir(parents=True, exist_ok=True)


def collect_capture_files(base_path: Union[str, Path]) -> List[Path]:
    """
    Recursively collect capture files below a directory, sorted by path.

    Args:
        base_path: Directory to scan

    Returns:
        List of Path objects for JSON capture files
    """
    base_path = normalize_path(base_path)
    matching_files = []
    for root, dirs, files in os.walk(base_path):
        dirs[:] = [d for d in dirs if not is_hidden(Path(root) / d)]
        for file in files:
            file_path = Path(root) / file
            if is_hidden(file_path):
                continue
            if file.lower().endswith(CAPTURE_EXTENSIONS):
                matching_files.append(file_path)
    return sorted(matching_files)


def read_json_file(file_path: Union[str, Path]) -> Any:
    """
    Read and decode a JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        InputError: If the file is not valid JSON
    """
    file_path = Path(file_path)
    with open(file_path, 'r', encoding='utf-8') as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise InputError(f"{file_path} is not valid JSON: {e}") from e


def load_capture(file_path: Union[str, Path]) -> Tuple[List[RawElement], Viewport]:
    """Load a capture payload written by the browser extraction step."""
    logger.info(f"Loading capture {file_path}")
    return parse_capture(read_json_file(file_path))


def load_summary(file_path: Union[str, Path]) -> LayoutSummary:
    data = read_json_file(file_path)
    if not isinstance(data, dict):
        raise InputError(f"{file_path} does not contain a layout summary")
    return LayoutSummary.from_dict(data)


def write_json(data: Union[Dict, Any], output_path: Union[str, Path]) -> Path:
    """Write a dict (or any object with to_dict) as indented JSON."""
    output_path = Path(output_path)
    ensure_directory(output_path.parent)
    payload = data.to_dict() if hasattr(data, 'to_dict') else data
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2)
    logger.info(f"Wrote {output_path}")
    return output_path
