import asyncio

import pytest

from spendctl.adapters import AdapterResult
from spendctl.executor import AgentAction
from spendctl.planner import CostOptimizerPlanner, GreedyPlanner
from spendctl.policies import policy_from_dict
from spendctl.runner import AgentRunner
from spendctl.sdk import create_session
from spendctl.telemetry import MemorySink

VENDOR = "VendorA" + "1" * 36


class ScriptedAdapter:
    """Succeeds or fails according to a script of booleans, then succeeds."""

    name = "scripted"

    def __init__(self, cost, script=()):
        self.cost = cost
        self.vendor = VENDOR
        self.endpoint = "https://vendor.example/scripted"
        self.script = list(script)
        self.inputs = []

    def estimate_cost(self, input):
        return self.cost

    async def execute(self, input, context):
        self.inputs.append(input)
        ok = self.script.pop(0) if self.script else True
        if not ok:
            raise RuntimeError(f"vendor refused {input}")
        return AdapterResult(data=input, receipt=None, cost=self.cost, duration=0, vendor=self.vendor)


def _session(budget_cap=1_000_000, max_failures=3):
    sink = MemorySink()
    policy = policy_from_dict(
        {
            "allowedVendors": [VENDOR],
            "budgetCap": budget_cap,
            "budgetWindow": 3600,
            "provenance": {"agentId": "runner-agent"},
            "haltConditions": {"maxConsecutiveFailures": max_failures, "settlementTimeoutMs": 5_000},
        }
    )
    return create_session(policy, sinks=[sink]), sink


def _actions(n, **kwargs):
    return [AgentAction(type="scripted", input=i, task_id=f"t{i}", **kwargs) for i in range(n)]


class TestPlanners:
    def test_greedy_prefers_priority_then_cost(self):
        candidates = [
            AgentAction(type="a", estimated_cost=50, priority=1),
            AgentAction(type="b", estimated_cost=30, priority=2),
            AgentAction(type="c", estimated_cost=10, priority=2),
            AgentAction(type="d", estimated_cost=500, priority=9),
        ]
        assert GreedyPlanner().select_action(candidates, budget=100).type == "c"
        assert GreedyPlanner().select_action(candidates, budget=1000).type == "d"

    def test_cost_optimizer_picks_cheapest(self):
        candidates = [
            AgentAction(type="a", estimated_cost=50, priority=5),
            AgentAction(type="b", estimated_cost=20),
        ]
        assert CostOptimizerPlanner().select_action(candidates, budget=100).type == "b"

    def test_nothing_affordable(self):
        candidates = [AgentAction(type="a", estimated_cost=50)]
        assert GreedyPlanner().select_action(candidates, budget=10) is None
        assert CostOptimizerPlanner().select_action([], budget=10) is None


class TestAgentRunner:
    def test_runs_every_action(self):
        session, sink = _session()
        adapter = ScriptedAdapter(1_000)
        report = asyncio.run(AgentRunner(session.executor, {"scripted": adapter}).run(_actions(3)))

        assert report.succeeded == 3
        assert report.halted is None
        assert report.total_cost == 3_000
        assert sink.types.count("action.completed") == 3
        assert "agent.halted" not in sink.types

    def test_consecutive_failures_halt_the_run(self):
        session, sink = _session(max_failures=2)
        adapter = ScriptedAdapter(1_000, script=[False, False, True])
        report = asyncio.run(AgentRunner(session.executor, {"scripted": adapter}).run(_actions(4)))

        assert report.halted == "consecutive_failures"
        assert report.failed == 2
        assert len(adapter.inputs) == 2
        halted = sink.of_type("agent.halted")
        assert len(halted) == 1
        assert halted[0].payload.reason == "consecutive_failures"
        assert halted[0].payload.details == "2 consecutive failures"
        assert halted[0].correlation_id.startswith("halt-")

    def test_success_resets_failure_count(self):
        session, sink = _session(max_failures=2)
        adapter = ScriptedAdapter(1_000, script=[False, True, False, True])
        report = asyncio.run(AgentRunner(session.executor, {"scripted": adapter}).run(_actions(4)))

        assert report.halted is None
        assert report.succeeded == 2
        assert report.failed == 2

    def test_failures_are_not_retried(self):
        session, _ = _session()
        adapter = ScriptedAdapter(1_000, script=[False])
        asyncio.run(AgentRunner(session.executor, {"scripted": adapter}).run(_actions(2)))
        assert adapter.inputs == [0, 1]

    def test_budget_exhaustion_halts(self):
        session, sink = _session(budget_cap=150_000)
        adapter = ScriptedAdapter(100_000)
        report = asyncio.run(AgentRunner(session.executor, {"scripted": adapter}).run(_actions(3)))

        assert report.succeeded == 1
        assert report.halted == "budget_exhausted"
        assert sink.of_type("agent.halted")[0].payload.reason == "budget_exhausted"

    def test_greedy_order_is_followed(self):
        session, _ = _session()
        adapter = ScriptedAdapter(10)
        actions = [
            AgentAction(type="scripted", input="low", priority=1),
            AgentAction(type="scripted", input="high", priority=5),
            AgentAction(type="scripted", input="mid", priority=3),
        ]
        asyncio.run(AgentRunner(session.executor, {"scripted": adapter}).run(actions))
        assert adapter.inputs == ["high", "mid", "low"]

    def test_manual_halt(self):
        session, sink = _session()
        runner = AgentRunner(session.executor, {"scripted": ScriptedAdapter(10)})
        runner.halt("operator stop")
        report = asyncio.run(runner.run(_actions(2)))

        assert report.halted == "manual"
        assert report.outcomes == []
        assert sink.of_type("agent.halted")[0].payload.details == "operator stop"

    def test_policy_violation_can_halt(self):
        session, sink = _session()
        stranger = ScriptedAdapter(10)
        stranger.vendor = "Stranger" + "3" * 36
        runner = AgentRunner(session.executor, {"scripted": stranger}, halt_on_policy_violation=True)
        report = asyncio.run(runner.run(_actions(2)))

        assert report.halted == "policy_violation"
        assert stranger.inputs == []

    def test_unknown_action_type(self):
        session, _ = _session()
        runner = AgentRunner(session.executor, {"scripted": ScriptedAdapter(10)})
        with pytest.raises(ValueError, match="mystery"):
            asyncio.run(runner.run([AgentAction(type="mystery")]))
