"""Sandbox check for filesystem paths."""

import os
from pathlib import Path
from typing import Union

from src.file_store.errors import PathEscapeError


class PathGuard:
    """Confines paths to a sandbox root.

    Both the root and the candidate are resolved with os.path.realpath, so
    "..", absolute segments and symlinks pointing outside the root are all
    rejected.
    """

    @staticmethod
    def resolve(root: Union[str, Path], relative_segment: str) -> Path:
        """Resolve a segment against root and ensure it stays inside.

        Args:
            root: Sandbox root directory
            relative_segment: Path relative to root (usually a basename)

        Returns:
            Absolute, resolved path inside root

        Raises:
            PathEscapeError: If the resolved path is not root or a descendant
        """
        real_root = os.path.realpath(root)
        real_path = os.path.realpath(os.path.join(real_root, relative_segment))

        if not real_path.startswith(real_root + os.sep) and real_path != real_root:
            raise PathEscapeError(relative_segment, str(root))
        return Path(real_path)
