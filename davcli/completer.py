"""Tab completion for commands and local/remote paths"""

import logging
import os
import posixpath
import shlex
from typing import List, Optional, Tuple

from prompt_toolkit.completion import Completer, Completion

from .client import DavClientError
from .commands import COMMANDS, LOCAL, REMOTE, Namespace
from .filesystem import FileSystem, LocalFileSystem
from .paths import resolve_local, resolve_remote
from .session import Session

logger = logging.getLogger(__name__)


def escape(name: str) -> str:
    """Escape a name for insertion into a shell-style line"""
    return name.replace("\\", "\\\\").replace(" ", "\\ ")


def completion_mode(name: str, slot: int) -> Tuple[Namespace, bool]:
    """Namespace to list and whether only directories qualify.

    Args:
        name: Command name (first token of the line)
        slot: 1-based position of the word being completed, 1 = command name
    """
    command = COMMANDS.get(name)
    if command is None:
        return REMOTE, False
    return command.path_namespace(slot - 2), command.dirs_only


def _split_typed(namespace: Namespace, cwd: str, typed: str) -> Tuple[str, str]:
    if namespace is LOCAL:
        directory, partial = os.path.split(typed)
        return resolve_local(cwd, directory), partial
    directory, partial = posixpath.split(typed)
    return resolve_remote(cwd, directory), partial


def complete(
    remote: FileSystem,
    session: Session,
    line: str,
    local: Optional[FileSystem] = None,
) -> List[str]:
    """Complete a partially typed line.

    Returns:
        Full-line replacements: command names while the first word is typed,
        otherwise ``line`` followed by the escaped rest of each matching name.
    """
    try:
        args = shlex.split(line)
    except ValueError:
        args = []
    if not args:
        return list(COMMANDS)

    typing_word = not line[-1].isspace()
    if len(args) == 1 and typing_word:
        return [name for name in COMMANDS if name.startswith(args[0])]

    slot = len(args) if typing_word else len(args) + 1
    namespace, dirs_only = completion_mode(args[0], slot)

    if namespace is LOCAL:
        fs = local or LocalFileSystem()
        cwd = session.local_cwd
    else:
        fs = remote
        cwd = session.remote_cwd

    if typing_word:
        directory, partial = _split_typed(namespace, cwd, args[-1])
    else:
        directory, partial = cwd, ""

    try:
        entries = fs.list_directory(directory)
    except (DavClientError, OSError) as e:
        logger.debug("completion listing %s failed: %s", directory, e)
        return []

    candidates = []
    for entry in sorted(entries, key=lambda e: e.name):
        if dirs_only and not entry.is_dir:
            continue
        if entry.name.startswith(partial):
            candidates.append(line + escape(entry.name[len(partial):]))
    return candidates


class DavCompleter(Completer):
    """prompt_toolkit adapter over complete()"""

    def __init__(self, handler):
        self.handler = handler

    def get_completions(self, document, complete_event):
        line = document.text_before_cursor
        word = document.get_word_before_cursor(WORD=True)
        candidates = complete(
            self.handler.remote, self.handler.session, line, self.handler.local
        )
        for candidate in candidates:
            if candidate.startswith(line) and " " in line:
                display = word + candidate[len(line):]
            else:
                display = candidate
            yield Completion(candidate, start_position=-len(line), display=display)
