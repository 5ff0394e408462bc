"""Main CLI Entry Point"""

import logging
import os
import sys
import tempfile

import click
from prompt_toolkit import PromptSession, prompt
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import FileHistory
from rich.console import Console

from .client import AuthenticationError, DavClient, DavClientError
from .commands import CommandError, CommandHandler
from .cli_commands import EditorError
from .completer import DavCompleter
from .config import Config, parse_target
from .filesystem import RemoteFileSystem
from .session import Session
from .version import get_version_string

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def fatal(error, code=1):
    """Print error on stderr and exit"""
    err_console.print(f"davcli: {error}", highlight=False, markup=False)
    sys.exit(code)


def connect(config: Config) -> DavClient:
    """Connect to the server, asking for credentials once if it requires them"""
    try:
        base_url, _ = parse_target(config.url)
    except ValueError as e:
        fatal(e)
    try:
        user, password = config.credentials()
    except ValueError as e:
        fatal(e, code=2)

    client = DavClient(base_url, user, password, timeout=config.timeout)
    try:
        client.connect()
        return client
    except AuthenticationError as e:
        if config.cred:
            fatal(e)
    except DavClientError as e:
        fatal(e)

    try:
        user = prompt("User: ")
        password = prompt("Password: ", is_password=True)
    except (EOFError, KeyboardInterrupt) as e:
        fatal(str(e) or "authentication input aborted", code=2)

    client = DavClient(base_url, user, password, timeout=config.timeout)
    try:
        client.connect()
    except DavClientError as e:
        fatal(e)
    return client


def make_history(history_file: str):
    """FileHistory at history_file, or in a temp file if that is not writable"""
    history_path = os.path.expanduser(history_file)
    try:
        os.makedirs(os.path.dirname(history_path) or ".", exist_ok=True)
        with open(history_path, "a"):
            pass
        return FileHistory(history_path)
    except OSError:
        temp_history = tempfile.NamedTemporaryFile(
            mode="w", delete=False, suffix="_davcli_history"
        )
        temp_history.close()
        console.print(
            f"[yellow]Warning: Cannot use {history_path}, using temporary history file[/yellow]",
            highlight=False,
        )
        return FileHistory(temp_history.name)


def start_repl(handler: CommandHandler, config: Config):
    """Start interactive REPL session"""
    session = PromptSession(
        history=make_history(config.history_file),
        auto_suggest=AutoSuggestFromHistory(),
        completer=DavCompleter(handler),
        complete_while_typing=False,
    )

    while True:
        try:
            prompt_text = "> "
            if config.prompthere:
                prompt_text = f"{handler.session.remote_cwd}> "
            line = session.prompt(prompt_text)
        except KeyboardInterrupt:
            continue
        except EOFError:
            break

        try:
            handler.execute(line)
        except Exception as e:
            logger.debug("unexpected error", exc_info=True)
            console.print(f"[red]Unexpected error: {e}[/red]", highlight=False)


def run_once(handler: CommandHandler, argv) -> int:
    """Run a single command, reporting errors on stderr"""
    try:
        handler.dispatch(list(argv))
    except (CommandError, DavClientError, EditorError, OSError) as e:
        err_console.print(f"{argv[0]}: {e}", highlight=False, markup=False)
        return 1
    return 0


@click.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@click.version_option(version=get_version_string(), prog_name="davcli")
@click.option(
    "--cred",
    default=lambda: os.environ.get("DAVC_CRED", ""),
    help="Credential for basic auth (user:password), defaults to $DAVC_CRED",
)
@click.option("--prompthere", is_flag=True, help="Display the remote directory in the prompt")
@click.option("--debug", is_flag=True, help="Log requests and dispatched commands")
@click.argument("url")
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
def main(url, command, cred, prompthere, debug):
    """davcli - shell for a WebDAV server and the local filesystem

    \b
    Examples:
      davcli webdavs://dav.example.com/files
      davcli --cred alice:secret dav.example.com ls -json
      davcli dav.example.com get /backup/db.sql
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    config = Config.from_args(url, cred=cred, prompthere=prompthere)
    client = connect(config)
    _, remote_path = parse_target(config.url)

    handler = CommandHandler(
        RemoteFileSystem(client),
        Session(remote_path),
        console=console,
        editor=config.editor,
    )

    if command:
        sys.exit(run_once(handler, command))
    start_repl(handler, config)


if __name__ == "__main__":
    main()
