"""Per-session navigation state"""

import os

from .paths import as_directory, clean_remote


class Session:
    """Current directories of one shell session.

    The remote directory is owned here and always ends with "/". The local
    directory is the process working directory.
    """

    def __init__(self, remote_cwd: str = "/"):
        self.remote_cwd = as_directory(clean_remote(remote_cwd))

    @property
    def local_cwd(self) -> str:
        return os.getcwd()

    def change_remote_directory(self, path: str) -> None:
        self.remote_cwd = as_directory(clean_remote(path))

    def change_local_directory(self, path: str) -> None:
        os.chdir(path)

    def __repr__(self):
        return f"Session(remote_cwd={self.remote_cwd!r})"
