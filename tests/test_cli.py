import json
import tempfile
import unittest
from pathlib import Path

from click.testing import CliRunner

from gcs_remote.__main__ import cli
from gcs_remote.controller import NotConnectedError
from gcs_remote.errors import NotFoundError
from gcs_remote.models import Listing, ObjectEntry
from gcs_remote.profiles import ConnectionProfile


class FakeHandle:
    def __init__(self, payload):
        self.byte_stream = iter([payload])

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None


class FakeService:
    def __init__(self):
        self.pages = [
            Listing(keys=[ObjectEntry("logs/a.txt", size_bytes=5)], common_prefixes=["logs/old/"]),
            Listing(keys=[ObjectEntry("logs/b.txt", size_bytes=7)]),
        ]
        self.list_calls = []
        self.uploads = []
        self.downloads = []
        self.delete_calls = []
        self.statuses = {}

    def list(self, prefix=None, max_entries=None, *, delimiter=None):
        self.list_calls.append((prefix, max_entries, delimiter))
        return iter(self.pages)

    def stat(self, key):
        if key == "missing":
            raise NotFoundError(key)
        return ObjectEntry(key, size_bytes=3, etag="etag-1")

    def download(self, key):
        return FakeHandle(b"streamed")

    def download_to_file(self, key, destination):
        self.downloads.append((key, destination))

    def upload_file(self, source, key, content_type=None):
        self.uploads.append((source, key, content_type))

    def delete_many(self, keys):
        self.delete_calls.append(keys)
        return {key: self.statuses.get(key, 204) for key in keys}


class FakeController:
    def __init__(self):
        self.service = FakeService()
        self.profiles = [ConnectionProfile(name="prod", bucket="bucket-prod")]
        self.connected = []
        self.saved = []
        self.disconnects = 0

    def connect_with_profile(self, name):
        if name != "prod":
            raise ValueError(f"Profile '{name}' does not exist")
        self.connected.append(name)
        return self.service

    def require_service(self):
        raise NotConnectedError("Not connected to a bucket")

    def disconnect(self):
        self.disconnects += 1

    def list_profiles(self):
        return list(self.profiles)

    def save_profile(self, profile):
        self.saved.append(profile)

    def delete_profile(self, name):
        if name != "prod":
            raise ValueError(f"Profile '{name}' does not exist")


class CliTests(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self.controller = FakeController()

    def invoke(self, *args):
        return self.runner.invoke(cli, list(args), obj=self.controller)

    def test_list_prints_pages(self):
        result = self.invoke("-p", "prod", "list", "logs/", "--max-entries", "5", "--delimiter", "/")

        self.assertEqual(0, result.exit_code, result.output)
        self.assertEqual(["logs/old/", "           5  logs/a.txt", "           7  logs/b.txt"], result.output.splitlines())
        self.assertEqual([("logs/", 5, "/")], self.controller.service.list_calls)
        self.assertEqual(["prod"], self.controller.connected)
        self.assertEqual(1, self.controller.disconnects)

    def test_list_json_output(self):
        result = self.invoke("-p", "prod", "list", "--json")

        lines = [json.loads(line) for line in result.output.splitlines()]
        self.assertEqual({"prefix": "logs/old/"}, lines[0])
        self.assertEqual("logs/a.txt", lines[1]["name"])
        self.assertEqual("5", lines[1]["size"])

    def test_list_rejects_zero_max_entries(self):
        result = self.invoke("-p", "prod", "list", "--max-entries", "0")

        self.assertNotEqual(0, result.exit_code)
        self.assertEqual([], self.controller.service.list_calls)

    def test_requires_profile(self):
        result = self.invoke("list")

        self.assertEqual(1, result.exit_code)
        self.assertIn("Not connected", result.output)

    def test_unknown_profile(self):
        result = self.invoke("-p", "staging", "stat", "a")

        self.assertEqual(1, result.exit_code)
        self.assertIn("does not exist", result.output)

    def test_stat(self):
        result = self.invoke("-p", "prod", "stat", "a.txt")

        self.assertEqual(0, result.exit_code, result.output)
        self.assertEqual("etag-1", json.loads(result.output)["etag"])

    def test_stat_not_found(self):
        result = self.invoke("-p", "prod", "stat", "missing")

        self.assertEqual(1, result.exit_code)
        self.assertIn("not found", result.output)

    def test_download_to_file_and_stdout(self):
        result = self.invoke("-p", "prod", "download", "a.txt", "out.txt")
        self.assertEqual(0, result.exit_code, result.output)
        self.assertEqual([("a.txt", "out.txt")], self.controller.service.downloads)

        result = self.invoke("-p", "prod", "download", "a.txt", "-")
        self.assertEqual(0, result.exit_code, result.output)
        self.assertEqual(b"streamed", result.stdout_bytes)

    def test_upload_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            source = Path(tmp) / "report.csv"
            source.write_text("a,b\n", encoding="utf-8")

            result = self.invoke("-p", "prod", "upload", str(source), "reports/r.csv", "--content-type", "text/csv")

        self.assertEqual(0, result.exit_code, result.output)
        self.assertEqual([(str(source), "reports/r.csv", "text/csv")], self.controller.service.uploads)

    def test_delete_reports_statuses(self):
        self.controller.service.statuses = {"b": 404}

        result = self.invoke("-p", "prod", "delete", "a", "b")

        self.assertEqual(1, result.exit_code)
        self.assertEqual(["204  a", "404  b"], result.output.splitlines())
        self.assertEqual([["a", "b"]], self.controller.service.delete_calls)

    def test_profiles_commands(self):
        result = self.invoke("profiles", "list")
        self.assertIn("prod\tbucket-prod\tadc", result.output)

        result = self.invoke("profiles", "add", "dev", "--bucket", "bucket-dev", "--mode", "token", "--token", "abc")
        self.assertEqual(0, result.exit_code, result.output)
        saved = self.controller.saved[0]
        self.assertEqual(("dev", "bucket-dev", "token", "abc"), (saved.name, saved.bucket, saved.credentials_mode, saved.token))

        result = self.invoke("profiles", "remove", "nope")
        self.assertEqual(1, result.exit_code)


if __name__ == "__main__":
    unittest.main()
