"""Path validation utilities for file references."""

from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit
from urllib.request import url2pathname

from jsonrefs.exceptions import RemoteLoadError


def file_url_to_path(url: str) -> Path:
    """Convert a ``file://`` URL to a local path, percent-decoding it."""
    return Path(url2pathname(urlsplit(url).path))


class PathValidator:
    """Validates file references for security and correctness."""

    @staticmethod
    def validate_file_url(url: str, ref: str, root_path: Path, max_parent_traversal_depth: int) -> Path:
        """Validate the file a reference points to.

        Args:
            url: Absolute ``file://`` URL the reference resolved to
            ref: The raw ``$ref`` value, used to count parent traversals
            root_path: The root path that references should not escape
            max_parent_traversal_depth: Maximum allowed leading '..' segments

        Returns:
            The resolved absolute path

        Raises:
            RemoteLoadError: If the path violates one of the constraints
        """
        resolved_path = file_url_to_path(url).resolve()

        try:
            resolved_path.relative_to(root_path.resolve())
        except ValueError:
            raise RemoteLoadError(f"Reference '{ref}' points outside allowed directory tree", url) from None

        # Count parent traversals by counting leading ".." components
        parent_traversals = 0
        for part in PurePosixPath(urlsplit(ref).path).parts:
            if part == "..":
                parent_traversals += 1
            elif part != ".":
                break

        if parent_traversals > max_parent_traversal_depth:
            raise RemoteLoadError(f"Reference '{ref}' exceeds maximum parent traversal depth of {max_parent_traversal_depth}", url)

        return resolved_path
