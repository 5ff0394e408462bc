"""Filesystem abstraction layer over the local disk and the WebDAV server"""

import os
import shutil
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from stat import S_ISDIR
from typing import Any, BinaryIO, ContextManager, Dict, Iterable, Iterator, List, Union

from .client import DavClient

CHUNK_SIZE = 65536


def format_permissions(mode: int, is_dir: bool) -> str:
    """Format permissions in Unix style"""
    result = "d" if is_dir else "-"
    result += "r" if mode & 0o400 else "-"
    result += "w" if mode & 0o200 else "-"
    result += "x" if mode & 0o100 else "-"
    result += "r" if mode & 0o040 else "-"
    result += "w" if mode & 0o020 else "-"
    result += "x" if mode & 0o010 else "-"
    result += "r" if mode & 0o004 else "-"
    result += "w" if mode & 0o002 else "-"
    result += "x" if mode & 0o001 else "-"
    return result


def iter_chunks(stream: BinaryIO, size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Read a binary stream chunk by chunk until EOF"""
    return iter(lambda: stream.read(size), b"")


@dataclass(frozen=True)
class Entry:
    """A directory entry as seen by either filesystem"""

    name: str
    size: int
    mod_time: datetime
    is_dir: bool
    mode: str

    @classmethod
    def from_dict(cls, info: Dict[str, Any]) -> "Entry":
        is_dir = info.get("isDir", False)
        return cls(
            name=info.get("name", ""),
            size=info.get("size", 0),
            mod_time=info["modTime"],
            is_dir=is_dir,
            mode=format_permissions(info.get("mode", 0), is_dir),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "size": self.size,
            "mode": self.mode,
            "modtime": self.mod_time.isoformat(),
            "isdir": self.is_dir,
        }


Data = Union[bytes, BinaryIO, Iterable[bytes]]


class FileSystem(ABC):
    """Operations shared by the local and the remote namespace.

    Paths handed to these methods are already normalized and absolute.
    """

    @abstractmethod
    def stat(self, path: str) -> Entry:
        pass

    @abstractmethod
    def list_directory(self, path: str) -> List[Entry]:
        pass

    @abstractmethod
    def make_directories(self, path: str) -> None:
        """Create path and any missing parents"""
        pass

    @abstractmethod
    def remove(self, path: str) -> None:
        """Remove a single file or empty directory"""
        pass

    @abstractmethod
    def copy(self, src: str, dst: str, overwrite: bool = True) -> None:
        pass

    @abstractmethod
    def rename(self, src: str, dst: str, overwrite: bool = True) -> None:
        pass

    @abstractmethod
    def read_stream(self, path: str) -> ContextManager[Iterable[bytes]]:
        """Context manager yielding the file content as byte chunks"""
        pass

    @abstractmethod
    def write_stream(self, path: str, data: Data) -> None:
        """Create or overwrite path with data"""
        pass


class LocalFileSystem(FileSystem):
    """The operating system's own filesystem"""

    def _entry(self, name: str, st: os.stat_result) -> Entry:
        is_dir = S_ISDIR(st.st_mode)
        return Entry(
            name=name,
            size=st.st_size,
            mod_time=datetime.fromtimestamp(st.st_mtime).astimezone(),
            is_dir=is_dir,
            mode=format_permissions(st.st_mode, is_dir),
        )

    def stat(self, path: str) -> Entry:
        return self._entry(os.path.basename(path) or path, os.stat(path))

    def list_directory(self, path: str) -> List[Entry]:
        entries = []
        with os.scandir(path) as it:
            for dirent in it:
                try:
                    st = dirent.stat()
                except OSError:
                    # dangling symlink
                    st = dirent.stat(follow_symlinks=False)
                entries.append(self._entry(dirent.name, st))
        return entries

    def make_directories(self, path: str) -> None:
        os.makedirs(path, mode=0o755, exist_ok=True)

    def remove(self, path: str) -> None:
        os.remove(path)

    def remove_tree(self, path: str) -> None:
        """Remove a directory and everything below it"""
        shutil.rmtree(path)

    def copy(self, src: str, dst: str, overwrite: bool = True) -> None:
        if not overwrite and os.path.exists(dst):
            raise FileExistsError(f"{dst}: File exists")
        shutil.copy2(src, dst)

    def rename(self, src: str, dst: str, overwrite: bool = True) -> None:
        if not overwrite and os.path.exists(dst):
            raise FileExistsError(f"{dst}: File exists")
        os.replace(src, dst)

    @contextmanager
    def read_stream(self, path: str) -> Iterator[BinaryIO]:
        with open(path, "rb") as f:
            yield f

    def write_stream(self, path: str, data: Data) -> None:
        with open(path, "wb") as f:
            if isinstance(data, (bytes, bytearray)):
                f.write(data)
            elif hasattr(data, "read"):
                shutil.copyfileobj(data, f, CHUNK_SIZE)
            else:
                for chunk in data:
                    f.write(chunk)


class RemoteFileSystem(FileSystem):
    """The WebDAV namespace, backed by DavClient"""

    def __init__(self, client: DavClient):
        self.client = client

    def stat(self, path: str) -> Entry:
        return Entry.from_dict(self.client.stat(path))

    def list_directory(self, path: str) -> List[Entry]:
        return [Entry.from_dict(info) for info in self.client.read_dir(path)]

    def make_directories(self, path: str) -> None:
        self.client.mkdir_all(path)

    def remove(self, path: str) -> None:
        self.client.remove(path)

    def copy(self, src: str, dst: str, overwrite: bool = True) -> None:
        self.client.copy(src, dst, overwrite)

    def rename(self, src: str, dst: str, overwrite: bool = True) -> None:
        self.client.rename(src, dst, overwrite)

    def read_stream(self, path: str) -> ContextManager[Iterable[bytes]]:
        return self.client.read_stream(path)

    def write_stream(self, path: str, data: Data) -> None:
        self.client.write_stream(path, data)
