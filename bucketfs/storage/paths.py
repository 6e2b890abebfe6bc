"""
Translation between logical filesystem paths and flat object keys.
"""

from typing import Any


def dirname(path: str) -> str:
    """Return the parent directory of ``path`` ('' for top-level entries)."""
    head, _, _ = path.rstrip("/").rpartition("/")
    return head


def pathinfo(path: str) -> dict[str, Any]:
    """
    Split a logical path into its components.

    Args:
        path: Slash-separated logical path

    Returns:
        Dictionary with ``path``, ``dirname``, ``basename``, ``filename`` and,
        when the basename has one, ``extension``
    """
    basename = path.rstrip("/").rpartition("/")[2]
    filename, dot, extension = basename.rpartition(".")
    if not dot:
        filename, extension = basename, None

    info: dict[str, Any] = {
        "path": path,
        "dirname": dirname(path),
        "basename": basename,
        "filename": filename,
    }
    if extension is not None:
        info["extension"] = extension
    return info


class PathKeyTranslator:
    """
    Map logical paths onto object keys under a fixed prefix.

    The prefix never starts with ``/`` and, when set, ends with exactly one.
    Paths are not sanitized beyond trimming leading slashes: ``..`` segments
    are passed to the backend untouched since its key namespace is flat.
    """

    def __init__(self, prefix: str = ""):
        prefix = prefix.lstrip("/").rstrip("/")
        self._prefix = f"{prefix}/" if prefix else ""

    @property
    def prefix(self) -> str:
        return self._prefix

    def apply_prefix(self, path: str) -> str:
        """Convert a logical path into an object key."""
        return (self._prefix + path.lstrip("/")).lstrip("/")

    def remove_prefix(self, key: str) -> str:
        """Convert an object key back into a logical path."""
        if self._prefix and key.startswith(self._prefix):
            return key[len(self._prefix):]
        return key

    def directory_key(self, directory: str) -> str:
        """Key under which every object of ``directory`` is listed."""
        directory = directory.strip("/")
        return self.apply_prefix(f"{directory}/" if directory else "")

    def __repr__(self) -> str:
        return f"PathKeyTranslator(prefix={self._prefix!r})"
