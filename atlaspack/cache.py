"""Skip repacking when neither the options nor the input images changed."""

import hashlib
import json
from pathlib import Path
from typing import Iterable, List, Union

from atlaspack.images import iter_image_files
from atlaspack.utils import get_logger

logger = get_logger("cache")

METADATA_EXTENSIONS = ("hash", "bin", "xml", "json")


def _update_with_file(h, path: Path) -> None:
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)


def compute_input_hash(options: dict, inputs: Iterable[Union[str, Path]]) -> str:
    """
    Hash the packing options and every input image's bytes.

    Args:
        options: Option values that affect the output
        inputs: Files or directories given on the command line

    Returns:
        Hex digest
    """
    h = hashlib.sha256()
    h.update(json.dumps(options, sort_keys=True).encode("utf-8"))
    for input_path in inputs:
        h.update(str(input_path).encode("utf-8"))
        for file_path in iter_image_files(input_path):
            _update_with_file(h, file_path)
    return h.hexdigest()


def is_up_to_date(hash_path: Union[str, Path], digest: str) -> bool:
    """Check if the stored hash matches ``digest``."""
    hash_path = Path(hash_path)
    if not hash_path.exists():
        return False
    return hash_path.read_text(encoding="utf-8").strip() == digest


def write_hash(hash_path: Union[str, Path], digest: str) -> None:
    Path(hash_path).write_text(digest, encoding="utf-8")


def remove_stale_outputs(output_dir: Union[str, Path], base_name: str, extension: str) -> List[Path]:
    """
    Delete outputs of a previous run.

    Args:
        output_dir: Directory holding the outputs
        base_name: Output name without extension
        extension: Atlas image extension

    Returns:
        Paths that were removed
    """
    output_dir = Path(output_dir)
    removed = []

    for ext in METADATA_EXTENSIONS:
        path = output_dir / f"{base_name}.{ext}"
        if path.exists():
            path.unlink()
            removed.append(path)

    for path in output_dir.glob(f"{base_name}*.{extension}"):
        if path.is_file():
            path.unlink()
            removed.append(path)

    if removed:
        logger.debug(f"removed {len(removed)} stale outputs")
    return removed
