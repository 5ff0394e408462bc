import io
import unittest
from datetime import datetime, timezone
from unittest import mock

from click.testing import CliRunner
from rich.console import Console

from davcli.cli import main, start_repl
from davcli.client import AuthenticationError, DavClientError, NotFoundError
from davcli.commands import CommandHandler
from davcli.config import Config
from davcli.session import Session

from fakes import MemoryFileSystem


class CliTestCase(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        patcher = mock.patch("davcli.cli.DavClient")
        self.DavClient = patcher.start()
        self.addCleanup(patcher.stop)
        self.client = self.DavClient.return_value

    def invoke(self, *args, **kwargs):
        env = {"DAVC_CRED": "", "DAVC_HISTORY": "", "EDITOR": ""}
        return self.runner.invoke(main, list(args), env=env, **kwargs)


class TestSingleCommand(CliTestCase):
    def test_pwd(self):
        result = self.invoke("webdav://dav.example.com/files", "pwd")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("/files/", result.output)
        self.DavClient.assert_called_once_with("http://dav.example.com", "", "", timeout=30)
        self.client.connect.assert_called_once_with()

    def test_ls_passes_flags_through(self):
        self.client.read_dir.return_value = [{
            "name": "a.txt", "size": 3, "mode": 0o664, "isDir": False,
            "modTime": datetime(2024, 1, 2, tzinfo=timezone.utc),
        }]
        result = self.invoke("dav.example.com", "ls", "-json")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('"name": "a.txt"', result.output)
        self.client.read_dir.assert_called_once_with("/")

    def test_cred_option(self):
        result = self.invoke("--cred", "alice:secret", "dav.example.com", "pwd")
        self.assertEqual(result.exit_code, 0, result.output)
        self.DavClient.assert_called_once_with("https://dav.example.com", "alice", "secret", timeout=30)

    def test_command_failure(self):
        self.client.stat.side_effect = NotFoundError("/nowhere/: No such file or directory")
        result = self.invoke("dav.example.com", "cd", "nowhere")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("cd: /nowhere/: No such file or directory", result.output)

    def test_unknown_command(self):
        result = self.invoke("dav.example.com", "frobnicate")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("unknown command", result.output)


class TestStartup(CliTestCase):
    def test_malformed_cred(self):
        result = self.invoke("--cred", "alice", "dav.example.com", "pwd")
        self.assertEqual(result.exit_code, 2)
        self.DavClient.assert_not_called()

    def test_invalid_location(self):
        result = self.invoke("http://", "pwd")
        self.assertEqual(result.exit_code, 1)

    def test_unreachable(self):
        self.client.connect.side_effect = DavClientError("Connection refused")
        result = self.invoke("dav.example.com", "pwd")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Connection refused", result.output)

    def test_rejected_cred_is_not_prompted(self):
        self.client.connect.side_effect = AuthenticationError("401 Unauthorized")
        with mock.patch("davcli.cli.prompt") as prompt:
            result = self.invoke("--cred", "alice:wrong", "dav.example.com", "pwd")
        self.assertEqual(result.exit_code, 1)
        prompt.assert_not_called()

    def test_prompts_for_credentials(self):
        first, second = mock.Mock(), mock.Mock()
        first.connect.side_effect = AuthenticationError("401 Unauthorized")
        self.DavClient.side_effect = [first, second]
        with mock.patch("davcli.cli.prompt", side_effect=["bob", "pw"]) as prompt:
            result = self.invoke("dav.example.com", "pwd")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(prompt.call_count, 2)
        self.assertEqual(
            self.DavClient.call_args_list[1],
            mock.call("https://dav.example.com", "bob", "pw", timeout=30),
        )
        second.connect.assert_called_once_with()

    def test_prompt_aborted(self):
        self.client.connect.side_effect = AuthenticationError("401 Unauthorized")
        with mock.patch("davcli.cli.prompt", side_effect=EOFError):
            result = self.invoke("dav.example.com", "pwd")
        self.assertEqual(result.exit_code, 2)

    def test_prompted_credentials_rejected(self):
        self.client.connect.side_effect = AuthenticationError("401 Unauthorized")
        with mock.patch("davcli.cli.prompt", side_effect=["bob", "pw"]):
            result = self.invoke("dav.example.com", "pwd")
        self.assertEqual(result.exit_code, 1)

    def test_encoded_location_path(self):
        result = self.invoke("https://dav.example.com/my%20docs/", "pwd")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("/my docs/", result.output)


class TestRepl(unittest.TestCase):
    def setUp(self):
        self.remote = MemoryFileSystem(files={"/a/notes.txt": b"hello\n"}, dirs=["/a/sub"])
        self.out = io.StringIO()
        self.handler = CommandHandler(
            self.remote, Session("/a/"), console=Console(file=self.out, width=200),
        )
        self.config = Config.from_args("dav.example.com", prompthere=True)

        patcher = mock.patch("davcli.cli.make_history")
        patcher.start()
        self.addCleanup(patcher.stop)
        patcher = mock.patch("davcli.cli.PromptSession")
        self.prompt = patcher.start().return_value.prompt
        self.addCleanup(patcher.stop)

    def run_lines(self, *lines):
        self.prompt.side_effect = list(lines)
        start_repl(self.handler, self.config)

    def prompts(self):
        return [c[0][0] for c in self.prompt.call_args_list]

    def test_prompt_follows_remote_directory(self):
        self.run_lines("cd sub", "pwd", EOFError())
        self.assertEqual(self.prompts(), ["/a/> ", "/a/sub/> ", "/a/sub/> "])
        self.assertIn("/a/sub/", self.out.getvalue())

    def test_plain_prompt(self):
        self.config.prompthere = False
        self.run_lines("cd sub", EOFError())
        self.assertEqual(self.prompts(), ["> ", "> "])

    def test_loop_survives_errors_and_interrupts(self):
        self.run_lines("nope", KeyboardInterrupt(), "cat missing.txt", "pwd", EOFError())
        output = self.out.getvalue()
        self.assertIn("nope: unknown command", output)
        self.assertIn("cat: ", output)
        self.assertIn("/a/", output.splitlines()[-1])
        self.assertEqual(self.prompt.call_count, 5)

    def test_exit_leaves_the_loop(self):
        with self.assertRaises(SystemExit) as ctx:
            self.run_lines("exit", "pwd")
        self.assertEqual(ctx.exception.code, 0)
        self.assertEqual(self.prompt.call_count, 1)

    def test_unexpected_error_is_reported(self):
        err = io.StringIO()
        with mock.patch("davcli.cli.console", Console(file=err, width=200)):
            with mock.patch.object(self.remote, "list_directory", side_effect=RuntimeError("boom")):
                self.run_lines("ls", "pwd", EOFError())
        self.assertIn("Unexpected error: boom", err.getvalue())
        self.assertIn("/a/", self.out.getvalue())


if __name__ == '__main__':
    unittest.main()
