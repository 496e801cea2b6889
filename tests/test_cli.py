import base64
import json
import tempfile
import unittest
from pathlib import Path

import yaml
from typer.testing import CliRunner

from src.common.annotations import STATUS_KEY
from src.webhook import cli as webhook_cli

FIXTURE = Path(__file__).parent / "fixtures" / "admission_review.json"


class WebhookCliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()
        self.tmpdir = tempfile.TemporaryDirectory()
        self.base = Path(self.tmpdir.name)

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def _invoke(self, *args: str):
        result = self.runner.invoke(webhook_cli.app, list(args))
        return result

    def test_review_writes_response(self) -> None:
        out = self.base / "response.json"
        result = self._invoke("review", str(FIXTURE), "--out", str(out))
        self.assertEqual(result.exit_code, 0, msg=result.output)
        reply = json.loads(out.read_text(encoding="utf-8"))["response"]
        self.assertTrue(reply["allowed"])
        patch = json.loads(base64.b64decode(reply["patch"]))
        self.assertEqual(patch[-1]["value"], {STATUS_KEY: "mutated"})

    def test_review_accepts_yaml_and_ignored_namespace(self) -> None:
        review = json.loads(FIXTURE.read_text(encoding="utf-8"))
        review_path = self.base / "review.yaml"
        review_path.write_text(yaml.safe_dump(review), encoding="utf-8")
        out = self.base / "response.json"
        result = self._invoke("review", str(review_path), "--ignore-namespace", "demo2", "--out", str(out))
        self.assertEqual(result.exit_code, 0, msg=result.output)
        reply = json.loads(out.read_text(encoding="utf-8"))["response"]
        patch = json.loads(base64.b64decode(reply["patch"]))
        self.assertEqual(patch, [{"op": "add", "path": "/metadata/annotations", "value": {STATUS_KEY: "skip"}}])

    def test_review_show_patched(self) -> None:
        result = self._invoke("review", str(FIXTURE), "--show-patched")
        self.assertEqual(result.exit_code, 0, msg=result.output)
        _, patched_yaml = result.output.split("---\n", 1)
        patched = yaml.safe_load(patched_yaml)
        mounts = patched["spec"]["containers"][0]["volumeMounts"]
        self.assertIn("/proc/cpuinfo", [mount["mountPath"] for mount in mounts])
        self.assertEqual(patched["metadata"]["annotations"][STATUS_KEY], "mutated")

    def test_review_missing_file(self) -> None:
        result = self._invoke("review", str(self.base / "missing.json"))
        self.assertNotEqual(result.exit_code, 0)

    def test_template_command_prints_yaml(self) -> None:
        result = self._invoke("template")
        self.assertEqual(result.exit_code, 0, msg=result.output)
        document = yaml.safe_load(result.output)
        self.assertEqual(document["volumes"][0]["name"], "lxcfs")
        self.assertEqual(len(document["volumeMounts"]), 9)

    def test_template_command_rejects_bad_file(self) -> None:
        bad = self.base / "bad.yaml"
        bad.write_text("volumes: nope\n", encoding="utf-8")
        result = self._invoke("template", "--template", str(bad))
        self.assertNotEqual(result.exit_code, 0)

    def test_serve_requires_certificates(self) -> None:
        result = self._invoke(
            "serve",
            "--tls-cert-file",
            str(self.base / "tls.crt"),
            "--tls-key-file",
            str(self.base / "tls.key"),
        )
        self.assertNotEqual(result.exit_code, 0)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
