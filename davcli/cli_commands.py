import json
import logging
import os
import shlex
import subprocess
import tempfile
from typing import BinaryIO, List

from rich.cells import set_cell_size
from rich.console import Console
from rich.markup import escape

from .client import TruncatedStreamError
from .filesystem import Entry, FileSystem

logger = logging.getLogger(__name__)


class EditorError(Exception):
    """The external editor could not be run or exited with an error"""
    pass


def sort_entries(entries: List[Entry]) -> List[Entry]:
    """Directories first, then files, each by name"""
    return sorted(entries, key=lambda e: (not e.is_dir, e.name))


def print_entries(console: Console, entries: List[Entry]):
    """Print one name per line, directories highlighted"""
    for entry in sort_entries(entries):
        if entry.is_dir:
            console.print(f"[bold cyan]{escape(entry.name)}/[/bold cyan]", highlight=False)
        else:
            console.print(escape(entry.name), highlight=False)


def print_long_entries(console: Console, entries: List[Entry]):
    """Print name, size and modification time per line"""
    for entry in sort_entries(entries):
        name = set_cell_size(entry.name + ("/" if entry.is_dir else ""), 20)
        mtime_display = entry.mod_time.strftime("%Y-%m-%d %H:%M:%S")
        if entry.is_dir:
            name = f"[bold cyan]{escape(name)}[/bold cyan]"
        else:
            name = escape(name)
        console.print(f"{name}  {entry.size:>20}  {mtime_display}", highlight=False)


def print_json_entries(out: BinaryIO, entries: List[Entry]):
    """Write the entries as a single JSON array"""
    data = json.dumps([entry.to_dict() for entry in sort_entries(entries)])
    out.write(data.encode() + b"\n")
    out.flush()


def cmd_cat(fs: FileSystem, path: str, out: BinaryIO):
    """Stream file content to out.

    A body shorter than the announced length is not an error: some
    servers do not report exact sizes.
    """
    with fs.read_stream(path) as chunks:
        try:
            for chunk in chunks:
                out.write(chunk)
        except TruncatedStreamError as e:
            logger.debug("cat %s: %s", path, e)
    out.flush()


def cmd_get(remote: FileSystem, local: FileSystem, remote_path: str, local_path: str):
    """Download a remote file; truncated bodies are accepted like cat"""
    with remote.read_stream(remote_path) as chunks:
        try:
            local.write_stream(local_path, chunks)
        except TruncatedStreamError as e:
            logger.debug("get %s: %s", remote_path, e)


def cmd_put(local: FileSystem, remote: FileSystem, local_path: str, remote_path: str):
    """Upload a local file"""
    with local.read_stream(local_path) as f:
        remote.write_stream(remote_path, f)


def run_editor(editor: str, path: str):
    """Run the editor on path and wait for it to exit"""
    argv = shlex.split(editor) + [path]
    logger.debug("running editor: %s", argv)
    try:
        subprocess.run(argv, check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        raise EditorError(f"{argv[0]}: {e}")


def cmd_edit(fs: FileSystem, path: str, editor: str) -> bool:
    """Edit a remote file through a temporary local copy.

    Returns:
        True if the file was modified and uploaded again
    """
    fd, temp_path = tempfile.mkstemp(prefix="davcli")
    try:
        with os.fdopen(fd, "wb") as f:
            with fs.read_stream(path) as chunks:
                for chunk in chunks:
                    f.write(chunk)

        before = os.stat(temp_path).st_mtime_ns
        run_editor(editor, temp_path)
        if os.stat(temp_path).st_mtime_ns == before:
            logger.debug("edit %s: unchanged", path)
            return False

        with open(temp_path, "rb") as f:
            fs.write_stream(path, f)
        return True
    finally:
        os.remove(temp_path)
