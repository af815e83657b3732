"""Working directory preparation and cleanup."""
import shutil
from pathlib import Path

from .errors import SetupError


def ensure_exists_and_empty(path: Path) -> Path:
    """Create `path` as an empty directory, clearing whatever was there."""
    path = Path(path)
    try:
        if path.exists() or path.is_symlink():
            if not path.is_dir() or path.is_symlink():
                raise SetupError(f"{path} exists and is not a directory")
            shutil.rmtree(path)
        path.mkdir(parents=True)
    except OSError as e:
        raise SetupError(f"Cannot prepare working directory {path}: {e}") from e
    return path


def delete_recursively(path: Path) -> None:
    path = Path(path)
    if path.exists():
        shutil.rmtree(path)
