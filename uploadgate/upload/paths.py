"""Storage key resolution.

    applications/{application_id}/{filename}
    applications/{application_id}/{path}/{filename}

The registry path is used verbatim (no slash normalization). Components are
rejected, never rewritten, when they could step outside the tenant's
namespace: absolute paths, "." / ".." segments, separators in the
application id or filename, and NUL bytes.
"""

from __future__ import annotations

from typing import Optional

from uploadgate.constants import STORAGE_KEY_ROOT
from uploadgate.upload.errors import UnsafeStorageKeyError

_SEPARATORS = ("/", "\\")
_DOT_SEGMENTS = frozenset({".", ".."})


def resolve_storage_key(
    application_id: str,
    path: Optional[str],
    filename: str,
) -> str:
    """Map (tenant, optional sub-path, filename) to an object key.

    Raises:
        UnsafeStorageKeyError: If any component is empty where required,
            contains a NUL byte, or would escape the tenant namespace.
    """
    _check_application_id(application_id)
    _check_filename(filename)

    if not path:
        return f"{STORAGE_KEY_ROOT}/{application_id}/{filename}"

    _check_path(path)
    return f"{STORAGE_KEY_ROOT}/{application_id}/{path}/{filename}"


def _check_application_id(application_id: str) -> None:
    if not application_id:
        raise UnsafeStorageKeyError("application_id", application_id, "empty")
    _reject_nul("application_id", application_id)
    if any(sep in application_id for sep in _SEPARATORS) or application_id in _DOT_SEGMENTS:
        raise UnsafeStorageKeyError(
            "application_id", application_id, "must be a single path segment"
        )


def _check_filename(filename: str) -> None:
    if not filename:
        raise UnsafeStorageKeyError("filename", filename, "empty")
    _reject_nul("filename", filename)
    for sep in _SEPARATORS:
        if sep in filename:
            raise UnsafeStorageKeyError(
                "filename", filename, f"contains the path separator {sep!r}"
            )
    if filename in _DOT_SEGMENTS:
        raise UnsafeStorageKeyError("filename", filename, "is a relative path segment")


def _check_path(path: str) -> None:
    _reject_nul("path", path)
    if path.startswith(_SEPARATORS):
        raise UnsafeStorageKeyError("path", path, "is absolute")
    segments = path.replace("\\", "/").split("/")
    if any(segment in _DOT_SEGMENTS for segment in segments):
        raise UnsafeStorageKeyError("path", path, "contains a '.' or '..' segment")


def _reject_nul(component: str, value: str) -> None:
    if "\x00" in value:
        raise UnsafeStorageKeyError(component, value, "contains a NUL byte")
