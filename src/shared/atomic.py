"""Crash-safe file replacement."""

import os
import tempfile
from pathlib import Path

from shared.types import PathLike


def atomic_write_text(path: PathLike, text: str, encoding: str = 'utf-8') -> None:
    """
    Replace ``path`` with ``text`` so readers see either the old or the new file.

    The temp file lives in the target directory so ``os.replace`` never
    crosses a filesystem.

    Raises:
        OSError: If the directory cannot be created or the write fails
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, 'w', encoding=encoding) as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
