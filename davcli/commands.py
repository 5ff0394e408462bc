"""REPL Command Table and Handlers"""

import logging
import os
import shlex
import sys
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Dict, List, Optional, Set, Tuple

from rich.console import Console
from rich.markup import escape

from . import cli_commands
from .client import DavClientError, NotDirectoryError
from .filesystem import FileSystem, LocalFileSystem, iter_chunks
from .paths import as_directory, remote_base_name, resolve_local, resolve_remote
from .session import Session

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Base exception for command line errors detected before any I/O"""
    pass


class InvalidArgumentError(CommandError):
    def __init__(self, message="invalid argument"):
        super().__init__(message)


class UnknownCommandError(CommandError):
    def __init__(self, name):
        super().__init__("unknown command")
        self.name = name


class Namespace(Enum):
    LOCAL = "local"
    REMOTE = "remote"
    NONE = "none"


LOCAL = Namespace.LOCAL
REMOTE = Namespace.REMOTE


@dataclass(frozen=True)
class Command:
    """Static description of a shell command.

    ``paths`` gives the namespace of each positional path argument, in
    order. ``optional`` is the number of trailing path arguments that may
    be omitted.
    """

    name: str
    namespace: Namespace
    usage: str
    summary: str
    paths: Tuple[Namespace, ...] = ()
    optional: int = 0
    dirs_only: bool = False
    accepts_flags: bool = False

    @property
    def min_args(self) -> int:
        return len(self.paths) - self.optional

    @property
    def max_args(self) -> int:
        return len(self.paths)

    def path_namespace(self, index: int) -> Namespace:
        """Namespace of the argument at index (0 = first argument)"""
        if 0 <= index < len(self.paths):
            return self.paths[index]
        return LOCAL if self.namespace is LOCAL else REMOTE


COMMANDS: Dict[str, Command] = {c.name: c for c in (
    Command("pwd", REMOTE, "pwd", "Print remote working directory"),
    Command("lpwd", LOCAL, "lpwd", "Print local working directory"),
    Command("cd", REMOTE, "cd <dir>", "Change remote directory",
            paths=(REMOTE,), dirs_only=True),
    Command("lcd", LOCAL, "lcd <dir>", "Change local directory",
            paths=(LOCAL,), dirs_only=True),
    Command("ls", REMOTE, "ls [-json] [dir]", "List remote directory",
            paths=(REMOTE,), optional=1, accepts_flags=True),
    Command("ll", REMOTE, "ll", "List remote directory with size and time"),
    Command("lls", LOCAL, "lls", "List local directory"),
    Command("mkdir", REMOTE, "mkdir <dir>", "Create remote directory (with parents)",
            paths=(REMOTE,), dirs_only=True),
    Command("lmkdir", LOCAL, "lmkdir <dir>", "Create local directory (with parents)",
            paths=(LOCAL,), dirs_only=True),
    Command("rm", REMOTE, "rm <path>", "Remove remote file or empty directory",
            paths=(REMOTE,)),
    Command("lrm", LOCAL, "lrm <path>", "Remove local file",
            paths=(LOCAL,)),
    Command("rmdir", REMOTE, "rmdir <dir>", "Remove empty remote directory",
            paths=(REMOTE,), dirs_only=True),
    Command("lrmdir", LOCAL, "lrmdir <dir>", "Remove local directory recursively",
            paths=(LOCAL,), dirs_only=True),
    Command("cp", REMOTE, "cp <src> <dst>", "Copy on the server (overwrites)",
            paths=(REMOTE, REMOTE)),
    Command("mv", REMOTE, "mv <src> <dst>", "Move/rename on the server (overwrites)",
            paths=(REMOTE, REMOTE)),
    Command("put", REMOTE, "put <local file>", "Upload into the remote directory",
            paths=(LOCAL,)),
    Command("get", REMOTE, "get <remote file>", "Download into the local directory",
            paths=(REMOTE,)),
    Command("cat", REMOTE, "cat <file>", "Print remote file",
            paths=(REMOTE,)),
    Command("write", REMOTE, "write <file>", "Write standard input to remote file",
            paths=(REMOTE,)),
    Command("edit", REMOTE, "edit <file>", "Edit remote file with $EDITOR",
            paths=(REMOTE,)),
    Command("vim", REMOTE, "vim <file>", "Edit remote file with vim",
            paths=(REMOTE,)),
    Command("help", Namespace.NONE, "help", "Show this help"),
    Command("exit", Namespace.NONE, "exit", "Exit the shell"),
)}


def split_flags(args: List[str]) -> Tuple[Set[str], List[str]]:
    """Separate "-flag" tokens from positional arguments"""
    flags = set()
    positional = []
    for arg in args:
        if arg.startswith("-"):
            flags.add(arg.lstrip("-"))
        else:
            positional.append(arg)
    return flags, positional


class CommandHandler:
    """Handler for REPL commands"""

    def __init__(
        self,
        remote: FileSystem,
        session: Session,
        local: Optional[LocalFileSystem] = None,
        console: Optional[Console] = None,
        stdin: Optional[BinaryIO] = None,
        stdout: Optional[BinaryIO] = None,
        editor: str = "vi",
    ):
        self.remote = remote
        self.local = local or LocalFileSystem()
        self.session = session
        self.console = console or Console()
        self._stdin = stdin
        self._stdout = stdout
        self.editor = editor

    @property
    def stdin(self) -> BinaryIO:
        return self._stdin or sys.stdin.buffer

    @property
    def stdout(self) -> BinaryIO:
        return self._stdout or sys.stdout.buffer

    def execute(self, line: str) -> bool:
        """Execute a command line. Returns False if the command failed."""
        try:
            argv = shlex.split(line)
        except ValueError as e:
            self.console.print(f"[red]{escape(str(e))}[/red]", highlight=False)
            return False
        if not argv:
            return True

        try:
            self.dispatch(argv)
        except (CommandError, DavClientError, cli_commands.EditorError, OSError) as e:
            self.console.print(self._format_error(argv[0], e), highlight=False)
            return False
        return True

    def _format_error(self, cmd: str, error: Exception) -> str:
        """Format error message in Unix style"""
        return f"[red]{escape(cmd)}: {escape(str(error))}[/red]"

    def dispatch(self, argv: List[str]) -> None:
        """Run one tokenized command.

        Raises:
            UnknownCommandError: argv[0] is not a known command
            InvalidArgumentError: wrong number of arguments
        """
        command = COMMANDS.get(argv[0])
        if command is None:
            raise UnknownCommandError(argv[0])

        args = argv[1:]
        flags = set()
        if command.accepts_flags:
            flags, args = split_flags(args)
        if not command.min_args <= len(args) <= command.max_args:
            raise InvalidArgumentError()

        resolved = [self._resolve(command.path_namespace(i), arg) for i, arg in enumerate(args)]
        logger.debug("dispatch %s %s", command.name, resolved)

        handler = getattr(self, f"cmd_{command.name}")
        if command.accepts_flags:
            handler(*resolved, flags=flags)
        else:
            handler(*resolved)

    def _resolve(self, namespace: Namespace, path: str) -> str:
        if namespace is LOCAL:
            return resolve_local(self.session.local_cwd, path)
        return resolve_remote(self.session.remote_cwd, path)

    def cmd_help(self):
        """Show help information"""
        self.console.print("\ndavcli commands\n", highlight=False)
        for command in COMMANDS.values():
            self.console.print(f"  {escape(command.usage):<24} {command.summary}", highlight=False)
        self.console.print(highlight=False)

    def cmd_pwd(self):
        self.console.print(escape(self.session.remote_cwd), highlight=False)

    def cmd_lpwd(self):
        self.console.print(escape(self.session.local_cwd), highlight=False)

    def cmd_cd(self, path: str):
        """Change remote directory"""
        entry = self.remote.stat(as_directory(path))
        if not entry.is_dir:
            raise NotDirectoryError(f"{path}: Not a directory")
        self.session.change_remote_directory(path)

    def cmd_lcd(self, path: str):
        """Change local directory"""
        entry = self.local.stat(path)
        if not entry.is_dir:
            raise NotADirectoryError(f"{path}: Not a directory")
        self.session.change_local_directory(path)

    def cmd_ls(self, path: Optional[str] = None, flags: Set[str] = frozenset()):
        """List remote directory contents"""
        entries = self.remote.list_directory(path or self.session.remote_cwd)
        if "json" in flags:
            cli_commands.print_json_entries(self.stdout, entries)
        else:
            cli_commands.print_entries(self.console, entries)

    def cmd_ll(self):
        entries = self.remote.list_directory(self.session.remote_cwd)
        cli_commands.print_long_entries(self.console, entries)

    def cmd_lls(self):
        try:
            entries = self.local.list_directory(self.session.local_cwd)
        except OSError as e:
            logger.debug("lls: %s", e)
            return
        cli_commands.print_entries(self.console, entries)

    def cmd_mkdir(self, path: str):
        self.remote.make_directories(path)

    def cmd_lmkdir(self, path: str):
        self.local.make_directories(path)

    def cmd_rm(self, path: str):
        self.remote.remove(path)

    def cmd_lrm(self, path: str):
        self.local.remove(path)

    def cmd_rmdir(self, path: str):
        self.remote.remove(path)

    def cmd_lrmdir(self, path: str):
        self.local.remove_tree(path)

    def cmd_cp(self, src: str, dst: str):
        self.remote.copy(src, dst, overwrite=True)

    def cmd_mv(self, src: str, dst: str):
        self.remote.rename(src, dst, overwrite=True)

    def cmd_put(self, local_path: str):
        """Upload a local file into the remote directory under its base name"""
        remote_path = resolve_remote(self.session.remote_cwd, os.path.basename(local_path))
        cli_commands.cmd_put(self.local, self.remote, local_path, remote_path)

    def cmd_get(self, remote_path: str):
        """Download a remote file into the local directory under its base name"""
        name = remote_base_name(remote_path)
        if not name:
            raise InvalidArgumentError(f"{remote_path}: not a file")
        local_path = os.path.join(self.session.local_cwd, name)
        cli_commands.cmd_get(self.remote, self.local, remote_path, local_path)

    def cmd_cat(self, path: str):
        cli_commands.cmd_cat(self.remote, path, self.stdout)

    def cmd_write(self, path: str):
        self.remote.write_stream(path, iter_chunks(self.stdin))

    def cmd_edit(self, path: str, editor: Optional[str] = None):
        """Edit a remote file, uploading it again only if it changed"""
        if cli_commands.cmd_edit(self.remote, path, editor or self.editor):
            logger.debug("edit %s: uploaded", path)
        else:
            logger.debug("edit %s: not modified, nothing uploaded", path)

    def cmd_vim(self, path: str):
        self.cmd_edit(path, editor="vim")

    def cmd_exit(self):
        sys.exit(0)
