"""WebDAV Server Client"""

import logging
import posixpath
from contextlib import contextmanager
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Iterator, List, Tuple
from urllib.parse import quote, unquote, urlsplit
from xml.etree import ElementTree

import requests
from requests.exceptions import (
    ChunkedEncodingError,
    ConnectionError,
    RequestException,
    Timeout,
)

from .paths import as_directory, clean_remote

logger = logging.getLogger(__name__)

DAV = "{DAV:}"

PROPFIND_BODY = (
    b'<?xml version="1.0" encoding="utf-8"?>'
    b'<d:propfind xmlns:d="DAV:"><d:prop>'
    b"<d:displayname/><d:resourcetype/>"
    b"<d:getcontentlength/><d:getlastmodified/>"
    b"</d:prop></d:propfind>"
)

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class DavClientError(Exception):
    """Base exception for WebDAV client errors"""
    pass


class NotFoundError(DavClientError):
    pass


class NotDirectoryError(DavClientError):
    pass


class DirectoryNotEmptyError(DavClientError):
    pass


class AuthenticationError(DavClientError):
    pass


class TruncatedStreamError(DavClientError):
    """Body ended before the length announced by the server"""
    pass


STATUS_MESSAGES = {
    403: "Permission denied",
    405: "Method not allowed",
    409: "Conflict (missing parent directory?)",
    412: "Destination already exists",
    423: "Resource is locked",
    500: "Internal server error",
    502: "Bad Gateway - backend service unavailable",
    507: "Insufficient storage",
}


def _parse_time(value):
    if not value:
        return EPOCH
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return EPOCH


def parse_multistatus(content: bytes) -> List[Tuple[str, Dict[str, Any]]]:
    """Parse a PROPFIND multistatus body.

    Returns:
        List of (href path, info) pairs, where info carries the keys
        "name", "size", "mode", "modTime" and "isDir".
    """
    try:
        root = ElementTree.fromstring(content)
    except ElementTree.ParseError as e:
        raise DavClientError(f"Malformed PROPFIND response: {e}")

    results = []
    for response in root.iter(f"{DAV}response"):
        href = unquote(urlsplit(response.findtext(f"{DAV}href", "")).path)

        prop = None
        for propstat in response.findall(f"{DAV}propstat"):
            status = propstat.findtext(f"{DAV}status", "").split()
            if len(status) > 1 and status[1] == "200":
                prop = propstat.find(f"{DAV}prop")
                break
        if prop is None:
            prop = response.find(f".//{DAV}prop")
        if prop is None:
            continue

        is_dir = prop.find(f"{DAV}resourcetype/{DAV}collection") is not None
        try:
            size = int(prop.findtext(f"{DAV}getcontentlength") or 0)
        except ValueError:
            size = 0

        results.append((href, {
            "name": posixpath.basename(href.rstrip("/")) or "/",
            "size": size,
            "mode": 0o775 if is_dir else 0o664,
            "modTime": _parse_time(prop.findtext(f"{DAV}getlastmodified")),
            "isDir": is_dir,
        }))
    return results


def _same_path(a: str, b: str) -> bool:
    return clean_remote(a) == clean_remote(b)


def _iter_body(response, chunk_size):
    try:
        for chunk in response.iter_content(chunk_size=chunk_size):
            if chunk:
                yield chunk
    except ChunkedEncodingError as e:
        raise TruncatedStreamError(f"unexpected EOF: {e}")


class DavClient:
    """Client for a WebDAV server"""

    def __init__(self, base_url, user="", password="", timeout=30):
        """
        Initialize WebDAV client.

        Args:
            base_url: Scheme and host of the server, e.g. "https://dav.example.com"
            user: Basic auth user name (default: no auth)
            password: Basic auth password
            timeout: Request timeout in seconds (default: 30)
        """
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        if user or password:
            self.session.auth = (user, password)
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return self.base_url + quote(path)

    def _handle_request_error(self, e: Exception) -> None:
        """Convert request exceptions to user-friendly error messages"""
        if isinstance(e, ConnectionError):
            host = urlsplit(self.base_url).netloc or "server"
            raise DavClientError(f"Connection refused - server not reachable at {host}")
        elif isinstance(e, Timeout):
            raise DavClientError(f"Request timeout after {self.timeout}s")
        else:
            raise DavClientError(str(e))

    def _raise_for_status(self, response, path: str) -> None:
        status_code = response.status_code
        if status_code == 401:
            raise AuthenticationError("401 Unauthorized")
        elif status_code == 404:
            raise NotFoundError(f"{path}: No such file or directory")
        message = STATUS_MESSAGES.get(status_code, f"HTTP error {status_code}")
        raise DavClientError(f"{path}: {message}")

    def _request(self, method: str, path: str, allow=(), **kwargs):
        url = self._url(path)
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except RequestException as e:
            self._handle_request_error(e)
        logger.debug("%s %s -> %s", method, url, response.status_code)
        if response.status_code >= 400 and response.status_code not in allow:
            response.close()
            self._raise_for_status(response, path)
        return response

    def _propfind(self, path: str, depth: int):
        response = self._request(
            "PROPFIND",
            path,
            headers={"Depth": str(depth), "Content-Type": "application/xml"},
            data=PROPFIND_BODY,
        )
        return parse_multistatus(response.content)

    def connect(self) -> None:
        """Check that the server answers and accepts our credentials"""
        self._propfind("/", 0)

    def stat(self, path: str) -> Dict[str, Any]:
        """Get file/directory information"""
        entries = self._propfind(path, 0)
        if not entries:
            raise NotFoundError(f"{path}: No such file or directory")
        return entries[0][1]

    def read_dir(self, path: str) -> List[Dict[str, Any]]:
        """List directory contents"""
        entries = self._propfind(as_directory(path), 1)
        files = []
        for href, info in entries:
            if _same_path(href, path):
                if not info["isDir"]:
                    raise NotDirectoryError(f"{path}: Not a directory")
                continue
            files.append(info)
        return files

    def mkdir_all(self, path: str) -> None:
        """Create a directory and any missing parents.

        The target is tried first; parents are only walked when the server
        answers 409 Conflict.
        """
        # 405 means the collection already exists
        response = self._request("MKCOL", as_directory(path), allow=(405, 409))
        if response.status_code != 409:
            return

        # ancestors outside the share may refuse; the final MKCOL reports real errors
        current = ""
        for segment in [s for s in path.split("/") if s][:-1]:
            current += "/" + segment
            response = self._request("MKCOL", as_directory(current), allow=(403, 404, 405, 409))
            if response.status_code in (403, 404, 409):
                logger.debug("MKCOL %s: %s, continuing", current, response.status_code)
        self._request("MKCOL", as_directory(path), allow=(405,))

    def remove(self, path: str) -> None:
        """Remove a file or an empty directory"""
        entries = self._propfind(path, 1)
        for href, info in entries:
            if _same_path(href, path) and info["isDir"] and len(entries) > 1:
                raise DirectoryNotEmptyError(f"{path}: Directory not empty")
        self._request("DELETE", path)

    def _transfer(self, method: str, src: str, dst: str, overwrite: bool) -> None:
        self._request(
            method,
            src,
            headers={
                "Destination": self._url(dst),
                "Overwrite": "T" if overwrite else "F",
                "Depth": "infinity",
            },
        )

    def copy(self, src: str, dst: str, overwrite: bool = True) -> None:
        """Server-side copy"""
        self._transfer("COPY", src, dst, overwrite)

    def rename(self, src: str, dst: str, overwrite: bool = True) -> None:
        """Server-side move/rename"""
        self._transfer("MOVE", src, dst, overwrite)

    @contextmanager
    def read_stream(self, path: str, chunk_size: int = 65536) -> Iterator[Iterator[bytes]]:
        """Stream file content.

        Yields an iterator of byte chunks; the iterator raises
        TruncatedStreamError when the body is shorter than announced.
        """
        response = self._request("GET", path, stream=True)
        try:
            yield _iter_body(response, chunk_size)
        finally:
            response.close()

    def write_stream(self, path: str, data) -> None:
        """Create or overwrite a file from bytes, a file object or an iterator of chunks"""
        self._request("PUT", path, data=data)
