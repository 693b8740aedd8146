import threading
import unittest

from spendctl.errors import DuplicateReservationError, InsufficientBudgetError, UnknownReservationError
from spendctl.ledger import BudgetManager, SpendLedger
from spendctl.policies import policy_from_dict

VENDOR = "VendorA" + "1" * 36


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


def make_policy(budget_cap=1_000_000, budget_window=3600, **extra):
    payload = {
        "allowedVendors": [VENDOR],
        "budgetCap": budget_cap,
        "budgetWindow": budget_window,
        "provenance": {"agentId": "agent-test"},
    }
    payload.update(extra)
    return policy_from_dict(payload)


class ReservationLedgerTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.manager = BudgetManager(make_policy(), clock=self.clock)

    def test_reserve_then_commit_charges_actual_cost(self):
        self.manager.reserve("r1", 100_000)
        state = self.manager.get_state()
        self.assertEqual(state.spent, 0)
        self.assertEqual(state.reserved, 100_000)
        self.assertEqual(state.available, 900_000)

        self.manager.commit("r1", 80_000)
        state = self.manager.get_state()
        self.assertEqual(state.spent, 80_000)
        self.assertEqual(state.reserved, 0)
        self.assertEqual(state.available, 920_000)
        self.assertEqual(state.total, 1_000_000)
        self.assertEqual(state.cap, 1_000_000)

    def test_reserve_beyond_available_leaves_state_untouched(self):
        self.manager.reserve("r1", 700_000)
        with self.assertRaises(InsufficientBudgetError) as ctx:
            self.manager.reserve("r2", 400_000)

        self.assertEqual(ctx.exception.requested, 400_000)
        self.assertEqual(ctx.exception.available, 300_000)
        self.assertIn("need 400000, have 300000", str(ctx.exception))
        self.assertNotIn("r2", self.manager.ledger.reservations)
        self.assertEqual(self.manager.get_state().reserved, 700_000)

    def test_reserve_exactly_available_succeeds(self):
        self.manager.reserve("r1", 1_000_000)
        self.assertEqual(self.manager.get_state().available, 0)
        self.assertFalse(self.manager.can_afford(1))
        self.assertTrue(self.manager.can_afford(0))

    def test_duplicate_reservation_rejected(self):
        self.manager.reserve("r1", 10)
        with self.assertRaises(DuplicateReservationError):
            self.manager.reserve("r1", 10)
        self.assertEqual(self.manager.get_state().reserved, 10)

    def test_negative_amount_rejected(self):
        with self.assertRaises(ValueError):
            self.manager.reserve("r1", -1)

    def test_commit_unknown_reservation(self):
        with self.assertRaises(UnknownReservationError):
            self.manager.commit("missing", 10)

    def test_commit_and_release_are_exclusive(self):
        self.manager.reserve("r1", 100)
        self.manager.release("r1")
        with self.assertRaises(UnknownReservationError):
            self.manager.commit("r1", 100)

        self.manager.reserve("r2", 100)
        self.manager.commit("r2", 100)
        self.manager.release("r2")
        self.assertEqual(self.manager.get_state().spent, 100)

    def test_double_release_is_a_noop(self):
        self.manager.reserve("r1", 250)
        self.manager.release("r1")
        self.manager.release("r1")
        self.manager.release("never-reserved")
        state = self.manager.get_state()
        self.assertEqual(state.reserved, 0)
        self.assertEqual(state.available, 1_000_000)

    def test_commit_above_cap_is_recorded_and_logged(self):
        self.manager.reserve("r1", 1_000_000)
        with self.assertLogs("spendctl.ledger.budget", level="CRITICAL") as logs:
            self.manager.commit("r1", 1_200_000)

        self.assertIn("Overspend detected", logs.output[0])
        state = self.manager.get_state()
        self.assertEqual(state.spent, 1_200_000)
        self.assertEqual(state.available, 0)

    def test_try_reserve_is_the_atomic_reserve(self):
        self.manager.try_reserve("r1", 400_000)
        self.assertIn("r1", self.manager.ledger.reservations)
        with self.assertRaises(InsufficientBudgetError):
            self.manager.try_reserve("r2", 600_001)


class WindowResetTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.manager = BudgetManager(make_policy(budget_window=60), clock=self.clock)

    def test_window_reset_restores_availability(self):
        self.manager.reserve("r1", 500_000)
        self.manager.commit("r1", 500_000)
        self.assertEqual(self.manager.get_state().available, 500_000)

        self.clock.now += 60_001
        state = self.manager.get_state()
        self.assertEqual(state.spent, 0)
        self.assertEqual(state.available, 1_000_000)
        self.assertEqual(state.window_start, self.clock.now)
        self.assertEqual(state.window_end, self.clock.now + 60_000)

    def test_window_boundary_is_exclusive(self):
        self.manager.reserve("r1", 10)
        self.manager.commit("r1", 10)
        self.clock.now += 60_000
        self.assertEqual(self.manager.get_state().spent, 10)

    def test_reset_drops_in_flight_reservations(self):
        self.manager.reserve("r1", 900_000)
        self.clock.now += 61_000

        state = self.manager.get_state()
        self.assertEqual(state.reserved, 0)
        self.assertNotIn("r1", self.manager.ledger.reservations)

        # The payment completed anyway; it is charged to the new window.
        self.manager.commit("r1", 900_000)
        self.assertEqual(self.manager.get_state().spent, 900_000)
        with self.assertRaises(UnknownReservationError):
            self.manager.commit("r1", 900_000)

    def test_release_after_reset_is_silent(self):
        self.manager.reserve("r1", 100)
        self.clock.now += 61_000
        self.manager.release("r1")
        with self.assertRaises(UnknownReservationError):
            self.manager.commit("r1", 100)

    def test_shared_ledger_resets_once(self):
        ledger = SpendLedger(1_000, 10, clock=self.clock)
        a = BudgetManager(make_policy(budget_cap=1_000, budget_window=10), ledger=ledger)
        b = BudgetManager(make_policy(budget_cap=1_000, budget_window=10), ledger=ledger)
        a.reserve("r1", 600)
        self.assertEqual(b.get_state().available, 400)
        self.clock.now += 10_001
        self.assertEqual(b.get_state().available, 1_000)
        self.assertEqual(a.get_state().available, 1_000)
        self.assertEqual(ledger.resets, 1)


class ConcurrentReserveTests(unittest.TestCase):
    def test_threads_never_exceed_cap(self):
        manager = BudgetManager(make_policy())
        outcomes = []
        barrier = threading.Barrier(20)

        def worker(i):
            barrier.wait()
            try:
                manager.reserve(f"r{i}", 100_000)
                outcomes.append(True)
            except InsufficientBudgetError:
                outcomes.append(False)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(outcomes.count(True), 10)
        state = manager.get_state()
        self.assertEqual(state.reserved, 1_000_000)
        self.assertLessEqual(state.spent + state.reserved, state.cap)


if __name__ == "__main__":
    unittest.main()
