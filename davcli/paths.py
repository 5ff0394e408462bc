"""Path normalization for the local and remote namespaces.

Local paths follow ``os.path`` conventions; remote paths are always
POSIX-style and absolute from the server root.
"""

import os
import posixpath


def clean_remote(path: str) -> str:
    """Collapse redundant separators and ``.``/``..`` segments"""
    cleaned = posixpath.normpath(path or "/")
    # normpath keeps exactly two leading slashes
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    if not cleaned.startswith("/"):
        cleaned = "/" + cleaned
    return cleaned


def as_directory(path: str) -> str:
    """Return path with a trailing separator"""
    if path.endswith("/"):
        return path
    return path + "/"


def resolve_remote(base: str, path: str) -> str:
    """Resolve path against the remote directory base"""
    if not posixpath.isabs(path):
        path = as_directory(base) + path
    return clean_remote(path)


def resolve_local(base: str, path: str) -> str:
    """Resolve path against the local directory base"""
    if not os.path.isabs(path):
        path = os.path.join(base, path)
    return os.path.normpath(path)


def remote_base_name(path: str) -> str:
    """Last segment of a remote path ('' for the root)"""
    return posixpath.basename(path.rstrip("/"))
