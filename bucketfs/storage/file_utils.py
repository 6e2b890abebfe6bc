"""
File utility functions for storage operations.

This module provides MIME type detection, content and stream size
measurement, and spooling of backend bodies into caller-owned streams.
"""

import io
import mimetypes
import os
import shutil
import stat
import tempfile
from typing import IO, Dict, Optional


class FileUtils:
    """Utility class for content inspection and stream handling."""

    DEFAULT_MIME_TYPE = 'application/octet-stream'
    TEXT_MIME_TYPE = 'text/plain'

    # Bodies up to this size stay in memory when spooled
    SPOOL_MAX_SIZE = 8 * 1024 * 1024

    CHUNK_SIZE = 1024 * 1024

    def __init__(self):
        """Initialize file utilities."""
        mimetypes.init()
        self._add_custom_mime_types()

    def _add_custom_mime_types(self) -> None:
        """Add MIME types the platform tables commonly miss."""
        custom_types: Dict[str, str] = {
            '.webp': 'image/webp',
            '.md': 'text/markdown',
            '.yaml': 'application/yaml',
            '.yml': 'application/yaml',
            '.gltf': 'model/gltf+json',
            '.glb': 'model/gltf-binary',
        }

        for extension, mime_type in custom_types.items():
            mimetypes.add_type(mime_type, extension)

    def get_content_type(self, path: str) -> Optional[str]:
        """
        Get MIME content type from a path's extension.

        Args:
            path: Logical path or key of the file

        Returns:
            MIME content type string, or None when the extension is unknown
        """
        content_type, _ = mimetypes.guess_type(path, strict=False)
        return content_type

    def guess_mimetype(self, path: str, content: str | bytes) -> str:
        """
        Guess the MIME type of an upload.

        The extension decides when it is known; otherwise content that
        decodes as UTF-8 is treated as text and anything else as binary.
        """
        content_type = self.get_content_type(path)
        if content_type:
            return content_type

        if isinstance(content, str):
            return self.TEXT_MIME_TYPE
        try:
            content.decode('utf-8')
        except UnicodeDecodeError:
            return self.DEFAULT_MIME_TYPE
        return self.TEXT_MIME_TYPE

    def content_size(self, content: str | bytes) -> int:
        """Size of ``content`` in bytes."""
        if isinstance(content, str):
            return len(content.encode('utf-8'))
        return len(content)

    def stream_size(self, stream: IO[bytes]) -> Optional[int]:
        """
        Number of bytes left to read from ``stream``.

        Returns None for streams that cannot seek, unless they are backed
        by a regular file. Pipes and sockets report a size of 0 and are
        treated as unknown.
        """
        try:
            position = stream.tell()
            end = stream.seek(0, io.SEEK_END)
            stream.seek(position)
        except (AttributeError, OSError, ValueError):
            try:
                st = os.fstat(stream.fileno())
            except (AttributeError, OSError, ValueError):
                return None
            return st.st_size if stat.S_ISREG(st.st_mode) else None
        return end - position

    def spool(self, body: IO[bytes]) -> IO[bytes]:
        """
        Copy a backend body into a temporary stream owned by the caller.

        The returned stream is rewound. Closing the backend body afterwards
        does not affect it.
        """
        stream = tempfile.SpooledTemporaryFile(max_size=self.SPOOL_MAX_SIZE)
        shutil.copyfileobj(body, stream, self.CHUNK_SIZE)
        stream.seek(0)
        return stream


# Create a singleton instance for convenience
file_utils = FileUtils()

__all__ = [
    'FileUtils',
    'file_utils',
]
