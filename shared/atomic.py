"""
Atomic file replacement.

Writes go to a temporary sibling file which is flushed, fsynced and then
renamed over the target with os.replace(). The target path is therefore
always either its previous complete content or the new complete content.
"""

import os
from pathlib import Path
from typing import Union

PathLike = Union[str, os.PathLike]


def temp_path_for(path: PathLike) -> Path:
    """Sibling temp path used while replacing ``path``."""
    path = Path(path)
    return path.with_name(path.name + '.tmp')


def _fsync_directory(directory: Path) -> None:
    """Flush the directory entry so the rename itself survives a crash."""
    if not hasattr(os, 'O_DIRECTORY'):
        return
    try:
        fd = os.open(directory, os.O_RDONLY | os.O_DIRECTORY)
    except OSError:
        # Some filesystems refuse to open directories; the rename is still atomic
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def atomic_write_text(path: PathLike, text: str, encoding: str = 'utf-8') -> None:
    """
    Replace ``path`` with ``text`` atomically.

    Raises:
        OSError: The temp file could not be written or renamed. The temp
                 file is removed and ``path`` is left untouched.
    """
    path = Path(path)
    tmp = temp_path_for(path)
    try:
        with open(tmp, 'w', encoding=encoding) as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise

    _fsync_directory(path.parent if str(path.parent) else Path('.'))
