import threading
import time
import unittest

import numpy as np
from numpy import testing

from skmotion.planner.sampling_based import ParallelPlan
from skmotion.planner.sampling_based import ParallelPlanStatus


class StubPlanner(object):

    def __init__(self, path=None, n_steps=1, error=None, delay=0.0):
        self.path = path
        self.n_steps = n_steps
        self.error = error
        self.delay = delay
        self.iterations = 0

    def step(self):
        self.iterations += 1
        if self.delay > 0:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.path is not None and self.iterations >= self.n_steps:
            return [np.array(q, dtype=np.float64) for q in self.path]
        return None


class TestParallelPlan(unittest.TestCase):

    def setUp(self):
        self.event = threading.Event()

    def test_single_solution(self):
        planners = [StubPlanner(), StubPlanner([[0.0], [1.0]], n_steps=3)]
        plan = ParallelPlan(planners, self.event)
        status, path, index = plan.solve(5.0)
        self.assertEqual(status, ParallelPlanStatus.SOLVED)
        self.assertEqual(index, 1)
        testing.assert_array_equal(path, [[0.0], [1.0]])
        self.assertGreaterEqual(plan.iterations, 3)
        self.assertEqual(plan.iterations,
                         sum(p.iterations for p in planners))

    def test_shortest_of_several_solutions(self):
        planners = [StubPlanner([[0.0], [1.0], [0.0], [1.0]]),
                    StubPlanner([[0.0], [1.0]]),
                    StubPlanner()]
        plan = ParallelPlan(planners, self.event, max_solutions=2)
        status, path, index = plan.solve(5.0)
        self.assertEqual(status, ParallelPlanStatus.SOLVED)
        self.assertEqual(index, 1)
        self.assertEqual(len(path), 2)

    def test_first_reported_path_wins(self):
        planners = [StubPlanner([[0.0], [1.0]], delay=0.3),
                    StubPlanner([[0.0], [2.0]], delay=0.01)]
        status, path, index = ParallelPlan(planners, self.event).solve(5.0)
        self.assertEqual(status, ParallelPlanStatus.SOLVED)
        self.assertEqual(index, 1)
        testing.assert_array_equal(path, [[0.0], [2.0]])

    def test_equal_length_goes_to_earlier_report(self):
        planners = [StubPlanner([[0.0], [1.0]], delay=0.3),
                    StubPlanner([[1.0], [2.0]], delay=0.01)]
        plan = ParallelPlan(planners, self.event, max_solutions=2)
        status, path, index = plan.solve(5.0)
        self.assertEqual(status, ParallelPlanStatus.SOLVED)
        self.assertEqual(index, 1)
        testing.assert_array_equal(path, [[1.0], [2.0]])

    def test_max_solutions_clamped(self):
        plan = ParallelPlan([StubPlanner([[0.0], [1.0]])], self.event,
                            max_solutions=4)
        self.assertEqual(plan.max_solutions, 1)
        status, _, index = plan.solve(5.0)
        self.assertEqual(status, ParallelPlanStatus.SOLVED)
        self.assertEqual(index, 0)

    def test_timeout(self):
        plan = ParallelPlan([StubPlanner(), StubPlanner()], self.event)
        status, path, index = plan.solve(0.05)
        self.assertEqual(status, ParallelPlanStatus.TIMEOUT)
        self.assertIsNone(path)
        self.assertIsNone(index)
        self.assertGreater(plan.iterations, 0)

    def test_terminated(self):
        self.event.set()
        plan = ParallelPlan([StubPlanner(), StubPlanner()], self.event)
        status, path, _ = plan.solve(5.0)
        self.assertEqual(status, ParallelPlanStatus.TERMINATED)
        self.assertIsNone(path)

    def test_terminated_while_running(self):
        timer = threading.Timer(0.1, self.event.set)
        timer.start()
        try:
            plan = ParallelPlan([StubPlanner()], self.event)
            status, _, _ = plan.solve(10.0)
        finally:
            timer.cancel()
        self.assertEqual(status, ParallelPlanStatus.TERMINATED)

    def test_worker_error(self):
        planners = [StubPlanner(), StubPlanner(error=RuntimeError('broken'))]
        with self.assertRaises(RuntimeError):
            ParallelPlan(planners, self.event).solve(5.0)

    def test_no_planner(self):
        with self.assertRaises(ValueError):
            ParallelPlan([], self.event)
