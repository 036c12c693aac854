"""Token dump discovery helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Generator, Iterable

DUMP_EXTENSIONS = (".json", ".yaml", ".yml")


def iter_dump_files(
    root_paths: Iterable[str], extensions: tuple[str, ...] = DUMP_EXTENSIONS
) -> Generator[Path, None, None]:
    """Yield token dumps given directly or found beneath the provided directories."""

    for root in root_paths:
        root_path = Path(root)
        if root_path.is_file():
            yield root_path
            continue
        if not root_path.is_dir():
            raise FileNotFoundError(f"No such file or directory: {root}")
        for path in sorted(root_path.rglob("*")):
            if path.suffix in extensions and path.is_file():
                yield path
