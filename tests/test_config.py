import os
import unittest
from unittest import mock

from davcli.config import Config, parse_cred, parse_target


class TestParseTarget(unittest.TestCase):
    def test_schemes(self):
        self.assertEqual(parse_target("webdav://h/x"), ("http://h", "/x"))
        self.assertEqual(parse_target("http://h/x"), ("http://h", "/x"))
        self.assertEqual(parse_target("webdavs://h/x"), ("https://h", "/x"))
        self.assertEqual(parse_target("https://h/x"), ("https://h", "/x"))
        self.assertEqual(parse_target("ftp://h/x"), ("https://h", "/x"))

    def test_bare_host(self):
        self.assertEqual(parse_target("dav.example.com"), ("https://dav.example.com", "/"))
        self.assertEqual(parse_target("dav.example.com:8080/files/"), ("https://dav.example.com:8080", "/files/"))

    def test_path_is_decoded(self):
        self.assertEqual(parse_target("https://h/my%20docs/"), ("https://h", "/my docs/"))
        self.assertEqual(parse_target("h/caf%C3%A9"), ("https://h", "/caf\u00e9"))

    def test_invalid(self):
        for url in ("", "http://", "/just/a/path"):
            with self.assertRaises(ValueError, msg=url):
                parse_target(url)


class TestCredentials(unittest.TestCase):
    def test_parse_cred(self):
        self.assertEqual(parse_cred("alice:secret"), ("alice", "secret"))
        self.assertEqual(parse_cred("alice:se:cret"), ("alice", "se:cret"))
        self.assertEqual(parse_cred("alice:"), ("alice", ""))
        with self.assertRaises(ValueError):
            parse_cred("alice")

    @mock.patch.dict(os.environ, {"DAVC_CRED": "env:pw", "EDITOR": "nano"})
    def test_from_env(self):
        config = Config.from_env()
        self.assertEqual(config.credentials(), ("env", "pw"))
        self.assertEqual(config.editor, "nano")
        self.assertEqual(config.timeout, 30)

    @mock.patch.dict(os.environ, {"DAVC_CRED": "env:pw"})
    def test_args_override_env(self):
        config = Config.from_args("h", cred="arg:pw", prompthere=True)
        self.assertEqual(config.credentials(), ("arg", "pw"))
        self.assertTrue(config.prompthere)
        self.assertEqual(config.url, "h")

    @mock.patch.dict(os.environ, {"DAVC_CRED": "env:pw", "EDITOR": "nano", "DAVC_HISTORY": "/tmp/hist"})
    def test_args_start_from_env(self):
        config = Config.from_args("h")
        self.assertEqual(config.credentials(), ("env", "pw"))
        self.assertEqual(config.editor, "nano")
        self.assertEqual(config.history_file, "/tmp/hist")

    @mock.patch.dict(os.environ, {"DAVC_CRED": "", "EDITOR": ""})
    def test_defaults(self):
        config = Config.from_args("h")
        self.assertEqual(config.credentials(), ("", ""))
        self.assertEqual(config.editor, "vi")


if __name__ == '__main__':
    unittest.main()
