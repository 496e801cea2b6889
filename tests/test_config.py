import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import yaml

from src.webhook.config import DEFAULT_CERT_FILE, WebhookSettings
from src.webhook.errors import TemplateError
from src.webhook.template import dump_template, load_template, lxcfs_template, parse_template

REPO_TEMPLATE = Path(__file__).resolve().parents[1] / "configs" / "lxcfs-template.yaml"


class WebhookSettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = WebhookSettings.from_env()
        self.assertEqual(settings.port, 8443)
        self.assertEqual(settings.cert_file, DEFAULT_CERT_FILE)
        self.assertFalse(settings.fail_open)
        policy = settings.policy_config()
        self.assertEqual(policy.ignored_namespaces, frozenset({"kube-system", "kube-public"}))
        self.assertEqual(policy.allowed_operations, frozenset({"CREATE"}))
        self.assertEqual(policy.allowed_kinds, frozenset({("", "v1", "Pod")}))

    def test_environment_overrides(self) -> None:
        env = {
            "WEBHOOK_PORT": "9443",
            "WEBHOOK_IGNORED_NAMESPACES": "kube-system, monitoring ,",
            "WEBHOOK_ALLOWED_OPERATIONS": "create,update",
            "WEBHOOK_FAIL_OPEN": "true",
            "WEBHOOK_TLS_CERT_FILE": "/tmp/cert.pem",
            "WEBHOOK_LOG_LEVEL": "debug",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = WebhookSettings.from_env()
        self.assertEqual(settings.port, 9443)
        self.assertEqual(settings.ignored_namespaces, ("kube-system", "monitoring"))
        self.assertEqual(settings.allowed_operations, ("CREATE", "UPDATE"))
        self.assertTrue(settings.fail_open)
        self.assertEqual(settings.cert_file, Path("/tmp/cert.pem"))
        self.assertEqual(settings.log_level, "DEBUG")

    def test_arguments_win_over_environment(self) -> None:
        with mock.patch.dict(os.environ, {"WEBHOOK_PORT": "9443", "WEBHOOK_FAIL_OPEN": "true"}, clear=True):
            settings = WebhookSettings.from_env(port=8080, fail_open=False, ignored_namespaces=[])
        self.assertEqual(settings.port, 8080)
        self.assertFalse(settings.fail_open)
        self.assertEqual(settings.policy_config().ignored_namespaces, frozenset())

    def test_invalid_port(self) -> None:
        with mock.patch.dict(os.environ, {"WEBHOOK_PORT": "https"}, clear=True):
            with self.assertRaises(ValueError):
                WebhookSettings.from_env()


class TemplateLoadingTests(unittest.TestCase):
    def test_repository_template_matches_builtin(self) -> None:
        self.assertEqual(load_template(REPO_TEMPLATE), lxcfs_template())

    def test_settings_load_template_file(self) -> None:
        settings = WebhookSettings(template_file=REPO_TEMPLATE)
        self.assertEqual(settings.load_template(), lxcfs_template())
        self.assertEqual(WebhookSettings().load_template(), lxcfs_template())

    def test_dump_round_trips_through_parse(self) -> None:
        document = yaml.safe_load(dump_template(lxcfs_template()))
        self.assertEqual(parse_template(document), lxcfs_template())

    def test_custom_template(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "template.yaml"
            path.write_text(
                "volumeMounts:\n"
                "  - name: cache\n"
                "    mountPath: /cache\n"
                "volumes:\n"
                "  - name: cache\n"
                "    emptyDir: {}\n",
                encoding="utf-8",
            )
            template = load_template(path)
        self.assertEqual([mount.mount_path for mount in template.volume_mounts], ["/cache"])
        self.assertEqual(template.volumes[0].source, {"emptyDir": {}})

    def test_malformed_templates(self) -> None:
        for document in (
            None,
            [],
            {"volumes": []},
            {"volumeMounts": [], "volumes": "lxcfs"},
            {"volumeMounts": [{"name": "x"}], "volumes": []},
            {"volumeMounts": [], "volumes": [{"emptyDir": {}}]},
            {"volumeMounts": [{"name": "x", "mountPath": "/x", "readOnly": "maybe"}], "volumes": []},
        ):
            with self.assertRaises(TemplateError, msg=repr(document)):
                parse_template(document)

    def test_missing_template_file(self) -> None:
        with self.assertRaises(TemplateError):
            load_template(Path("does/not/exist.yaml"))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
