"""Configuration management for davcli"""

import os
from typing import Tuple
from urllib.parse import unquote, urlsplit

SCHEMES = {
    "webdav": "http",
    "http": "http",
    "webdavs": "https",
    "https": "https",
}


def parse_target(url: str) -> Tuple[str, str]:
    """Split a target location into (base URL, remote path).

    Accepts webdav://, webdavs://, http://, https:// or a bare host;
    anything but webdav/http selects https.
    """
    if "://" in url:
        scheme, rest = url.split("://", 1)
    else:
        scheme, rest = "", url
    parts = urlsplit("//" + rest)
    if not parts.netloc:
        raise ValueError(f"invalid location: {url!r}")
    scheme = SCHEMES.get(scheme.lower(), "https")
    return f"{scheme}://{parts.netloc}", unquote(parts.path) or "/"


def parse_cred(cred: str) -> Tuple[str, str]:
    """Split "user:password" into its parts"""
    user, sep, password = cred.partition(":")
    if not sep:
        raise ValueError("credential must be in the form user:password")
    return user, password


class Config:
    """Configuration for a davcli session"""

    def __init__(self):
        self.url = None
        self.cred = os.getenv("DAVC_CRED", "")
        self.prompthere = False
        self.history_file = os.getenv("DAVC_HISTORY", "~/.davcli_history")
        self.editor = os.getenv("EDITOR") or "vi"
        self.timeout = 30

    @classmethod
    def from_env(cls):
        """Create configuration from environment variables"""
        return cls()

    @classmethod
    def from_args(cls, url: str, cred: str = None, prompthere: bool = False):
        """Create configuration from command line arguments"""
        config = cls.from_env()
        config.url = url
        if cred:
            config.cred = cred
        config.prompthere = prompthere
        return config

    def credentials(self) -> Tuple[str, str]:
        if not self.cred:
            return "", ""
        return parse_cred(self.cred)

    def __repr__(self):
        return f"Config(url={self.url}, prompthere={self.prompthere})"
