import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from pydantic import ValidationError

from spendctl.policies import (
    PaymentPolicy,
    create_policy,
    delete_policy,
    list_policies,
    load_policy,
    load_policy_file,
    policy_from_dict,
)

VENDOR = "VendorA" + "1" * 36
OTHER = "VendorB" + "2" * 36

CAMEL_POLICY = {
    "allowedVendors": [VENDOR],
    "budgetCap": 1_000_000,
    "budgetWindow": 3600,
    "rateLimits": {VENDOR: 10},
    "provenance": {"agentId": "buyer-agent-001", "taskId": "demo-task-001", "commitHash": "v1"},
    "haltConditions": {"maxConsecutiveFailures": 3, "settlementTimeoutMs": 30000},
}


class PolicyModelTests(unittest.TestCase):
    def test_camel_case_configuration_is_accepted(self):
        policy = policy_from_dict(CAMEL_POLICY)

        self.assertEqual(policy.allowed_vendors, (VENDOR,))
        self.assertEqual(policy.budget_cap, 1_000_000)
        self.assertEqual(policy.budget_window_ms, 3_600_000)
        self.assertEqual(policy.rate_limits, {VENDOR.lower(): 10})
        self.assertEqual(policy.halt_conditions.max_consecutive_failures, 3)
        self.assertEqual(policy.halt_conditions.settlement_timeout_ms, 30_000)
        self.assertEqual(policy.provenance.agent_id, "buyer-agent-001")

    def test_snake_case_is_accepted_too(self):
        policy = PaymentPolicy(
            allowed_vendors=[VENDOR, OTHER, VENDOR],
            budget_cap=10,
            budget_window=1,
            provenance={"agent_id": "a"},
        )
        self.assertEqual(policy.allowed_vendors, (VENDOR, OTHER))
        self.assertEqual(policy.halt_conditions.max_consecutive_failures, 3)

    def test_round_trips_camel_case(self):
        data = policy_from_dict(CAMEL_POLICY).to_dict()
        self.assertIn("allowedVendors", data)
        self.assertIn("haltConditions", data)
        self.assertEqual(data["provenance"]["agentId"], "buyer-agent-001")
        self.assertEqual(policy_from_dict(data), policy_from_dict(CAMEL_POLICY))

    def test_provenance_tags_are_strings(self):
        tags = policy_from_dict(CAMEL_POLICY).provenance_tags()
        self.assertEqual(tags, {"agentId": "buyer-agent-001", "taskId": "demo-task-001", "commitHash": "v1"})

    def test_rate_limit_for_unlisted_vendor_is_kept_with_warning(self):
        with self.assertLogs("spendctl.policies", level="WARNING") as logs:
            policy = policy_from_dict(dict(CAMEL_POLICY, rateLimits={OTHER: 1}))
        self.assertEqual(policy.rate_limit_for(OTHER), 1)
        self.assertIn("outside allowedVendors", logs.output[0])

    def test_negative_values_rejected(self):
        with self.assertRaises(ValueError):
            policy_from_dict(dict(CAMEL_POLICY, budgetCap=-1))
        with self.assertRaises(ValueError):
            policy_from_dict(dict(CAMEL_POLICY, budgetWindow=0))
        with self.assertRaises(ValueError):
            policy_from_dict(dict(CAMEL_POLICY, rateLimits={VENDOR: -1}))

    def test_policy_is_immutable(self):
        policy = policy_from_dict(CAMEL_POLICY)
        with self.assertRaises(ValidationError):
            policy.budget_cap = 5


class PolicyStoreTests(unittest.TestCase):
    def test_create_and_load_policy(self):
        with tempfile.TemporaryDirectory() as temp_dir, patch.dict(
            "os.environ", {"SPENDCTL_POLICY_DIR": temp_dir}, clear=False
        ):
            created = create_policy("demo", CAMEL_POLICY)
            loaded = load_policy("demo")

            self.assertEqual(created, loaded)
            self.assertTrue((Path(temp_dir) / "demo.json").exists())

            items = list_policies()
            self.assertEqual(list(items), ["demo"])

            self.assertTrue(delete_policy("demo"))
            self.assertFalse(delete_policy("demo"))
            with self.assertRaises(FileNotFoundError):
                load_policy("demo")

    def test_yaml_policies_are_loaded(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "from_yaml.yaml"
            path.write_text(
                "allowedVendors:\n"
                f"  - {VENDOR}\n"
                "budgetCap: 5000\n"
                "budgetWindow: 60\n"
                "provenance:\n"
                "  agentId: yaml-agent\n",
                encoding="utf-8",
            )
            policy = load_policy_file(path)
            self.assertEqual(policy.budget_cap, 5000)
            self.assertEqual(load_policy("from_yaml", temp_dir), policy)

    def test_list_skips_malformed_files(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            create_policy("good", CAMEL_POLICY, temp_dir)
            (Path(temp_dir) / "broken.json").write_text("{not json", encoding="utf-8")
            (Path(temp_dir) / "invalid.json").write_text(json.dumps({"budgetCap": 1}), encoding="utf-8")

            self.assertEqual(list(list_policies(temp_dir)), ["good"])

    def test_policy_id_is_validated(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            with self.assertRaises(ValueError):
                create_policy("../escape", CAMEL_POLICY, temp_dir)


if __name__ == "__main__":
    unittest.main()
