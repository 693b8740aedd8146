import json
import logging
import unittest
from pathlib import Path
import tempfile
from unittest.mock import patch

from typer.testing import CliRunner

from spendctl import __version__
from spendctl.cli import app
from spendctl.utils.config_loader import SpendctlConfig, TelemetryConfig, config_loader

VENDOR = "VendorA" + "1" * 36


class CLITests(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.env = {
            "SPENDCTL_CONFIG_DIR": str(self.root / "config"),
            "SPENDCTL_POLICY_DIR": str(self.root / "policies"),
            "SPENDCTL_LOG_DIR": str(self.root / "logs"),
            "SOL_USD_PRICE": "150",
        }
        quiet_config = SpendctlConfig(telemetry=TelemetryConfig(console=False))
        self._config = patch.object(config_loader, "config", quiet_config)
        self._config.start()

    def tearDown(self):
        self._config.stop()
        logger = logging.getLogger("spendctl")
        for handler in logger.handlers:
            handler.close()
        logger.handlers = []
        self._tmp.cleanup()

    def invoke(self, *args):
        return self.runner.invoke(app, list(args), env=self.env)

    def test_version(self):
        result = self.invoke("version")
        self.assertEqual(result.exit_code, 0)
        self.assertIn(f"spendctl {__version__}", result.output)

    def test_init_writes_default_config(self):
        result = self.invoke("init")
        self.assertEqual(result.exit_code, 0, result.output)
        config_file = self.root / "config" / "config.yaml"
        self.assertTrue(config_file.exists())
        self.assertIn("sol_usd_price", config_file.read_text())
        self.assertTrue((self.root / "policies").is_dir())
        self.assertTrue((self.root / "logs").is_dir())

        second = self.invoke("init")
        self.assertIn("Keeping existing", second.output)

    def test_policy_lifecycle(self):
        created = self.invoke(
            "policy", "create", "demo",
            "--vendor", VENDOR,
            "--budget-cap", "500000",
            "--rate-limit", f"{VENDOR}=5",
            "--agent-id", "cli-agent",
        )
        self.assertEqual(created.exit_code, 0, created.output)
        self.assertIn("Policy 'demo' saved", created.output)

        listed = self.invoke("policy", "list")
        self.assertEqual(listed.exit_code, 0)
        self.assertIn("demo", listed.output)
        self.assertIn("cli-agent", listed.output)

        shown = self.invoke("policy", "show", "demo")
        self.assertEqual(shown.exit_code, 0)
        self.assertIn('"budgetCap": 500000', shown.output)

        deleted = self.invoke("policy", "delete", "demo")
        self.assertEqual(deleted.exit_code, 0)
        missing = self.invoke("policy", "show", "demo")
        self.assertEqual(missing.exit_code, 1)
        self.assertIn("not found", missing.output)

    def test_policy_create_rejects_bad_rate_limit(self):
        result = self.invoke("policy", "create", "bad", "--vendor", VENDOR, "--rate-limit", "nonsense")
        self.assertNotEqual(result.exit_code, 0)

    def test_policy_create_rejects_invalid_policy(self):
        result = self.invoke(
            "policy", "create", "bad",
            "--vendor", VENDOR,
            "--budget-window", "0",
        )
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Failed to create policy", result.output)

    def test_run_then_summarize(self):
        log_path = self.root / "telemetry.jsonl"
        ran = self.invoke("run", "--quiet", "--jsonl", str(log_path))
        self.assertEqual(ran.exit_code, 0, ran.output)
        self.assertIn("Task Outcomes", ran.output)
        self.assertIn("Spent: 199998 lamports", ran.output)

        lines = log_path.read_text().splitlines()
        types = [json.loads(line)["type"] for line in lines]
        self.assertEqual(types.count("action.started"), 3)
        self.assertEqual(types.count("budget.delta"), 3)

        summary = self.invoke("telemetry", "summary", str(log_path))
        self.assertEqual(summary.exit_code, 0, summary.output)
        self.assertIn("Telemetry summary", summary.output)
        self.assertIn("succeeded 3", summary.output)

        as_json = self.invoke("telemetry", "summary", str(log_path), "--json")
        data = json.loads(as_json.output)
        self.assertEqual(data["task_stats"]["started"], 3)
        self.assertEqual(data["budget"]["spent_lamports"], 199_998)

    def test_run_with_stored_policy_halts_on_budget(self):
        self.invoke("policy", "create", "tight", "--vendor", VENDOR, "--budget-cap", "100000")
        ran = self.invoke("run", "--policy", "tight", "--quiet")
        self.assertEqual(ran.exit_code, 0, ran.output)
        self.assertIn("budget_exhausted", ran.output)

    def test_summary_of_missing_log(self):
        result = self.invoke("telemetry", "summary", str(self.root / "absent.jsonl"))
        self.assertEqual(result.exit_code, 1)


if __name__ == "__main__":
    unittest.main()
