"""davcli - interactive shell for local and WebDAV filesystems"""

from .version import __version__

__all__ = ["__version__"]
