import threading
import unittest

import numpy as np
from numpy import testing

from skmotion.command import CartesianWaypoint
from skmotion.command import CompositeInstruction
from skmotion.command import JointWaypoint
from skmotion.command import ManipulatorInfo
from skmotion.command import MoveInstruction
from skmotion.models import IIWA14_JOINT_NAMES
from skmotion.models import iiwa14_environment
from skmotion.planner.core.profile import ProfileDictionary
from skmotion.planner.core.types import PlannerRequest
from skmotion.planner.core.types import PlannerState
from skmotion.planner.core.types import PlannerStatus
from skmotion.planner.sampling_based import ConstraintEvaluator
from skmotion.planner.sampling_based import ESTConfigurator
from skmotion.planner.sampling_based import RRTConfigurator
from skmotion.planner.sampling_based import RRTConnectConfigurator
from skmotion.planner.sampling_based import SamplingMotionPlanner
from skmotion.planner.sampling_based import SamplingPlanProfile
from skmotion.planner.sampling_based import UprightConstraint
from skmotion.planner.sampling_based.path import interpolate_path
from skmotion.planner.validation import check_trajectory


START = np.array([0.1, 0.2, 0.1, -0.4, 0.1, 0.3, 0.1])
GOAL = np.array([0.5, 0.4, 0.0, -0.8, 0.0, 0.5, 0.2])


def stretched(yaw):
    """Arm stretched horizontally, turned about the base by yaw."""
    q = np.zeros(7)
    q[0] = yaw
    q[1] = np.pi / 2.0
    return q


def tool_down(yaw):
    """Tool z axis about 0.035 rad from pointing straight down."""
    return np.array([yaw, 0.2762, 0.0, -1.3348, 0.0, 1.4959, 0.0])


def joint_move(q, move_type='freespace', **kwargs):
    return MoveInstruction(JointWaypoint(q, IIWA14_JOINT_NAMES), move_type,
                           **kwargs)


def make_request(env, instructions, profiles=None):
    return PlannerRequest(
        instructions=CompositeInstruction(instructions),
        environment=env, profiles=profiles,
        manipulator_info=ManipulatorInfo('manipulator', 'tool0'),
        name='sampling_test')


def single_profile(**kwargs):
    profiles = ProfileDictionary()
    profiles.add_profile('sampling_plan', 'DEFAULT',
                         SamplingPlanProfile(**kwargs))
    return profiles


class TestSamplingMotionPlanner(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.env = iiwa14_environment()

    def test_free_space(self):
        profiles = single_profile(planning_time=10.0, random_seed=0)
        request = make_request(self.env, [joint_move(START, 'start'),
                                          joint_move(GOAL)], profiles)
        planner = SamplingMotionPlanner()
        response = planner.solve(request)
        self.assertTrue(response.success, response.message)
        self.assertEqual(planner.state, PlannerState.CONVERGED)

        trajectory = response.trajectory
        # endpoints are exactly the requested joint positions
        testing.assert_array_equal(trajectory.positions[0], START)
        testing.assert_array_equal(trajectory.positions[-1], GOAL)
        self.assertGreaterEqual(len(trajectory), 20)
        self.assertEqual(trajectory.instruction_indices[0], 0)
        self.assertEqual(set(trajectory.instruction_indices[1:]), {1})
        self.assertEqual([s.success for s in response.segments],
                         [True, True])
        self.assertGreater(response.iterations, 0)

    def test_several_segments(self):
        middle = 0.5 * (START + GOAL) + np.array([0.2, 0, 0, 0, 0, 0, 0])
        profiles = single_profile(planning_time=10.0, n_output_states=5,
                                  random_seed=1)
        request = make_request(self.env, [joint_move(START, 'start'),
                                          joint_move(middle),
                                          joint_move(GOAL)], profiles)
        response = SamplingMotionPlanner().solve(request)
        self.assertTrue(response.success, response.message)
        trajectory = response.trajectory
        testing.assert_array_equal(trajectory.rows_of(1)[-1], middle)
        testing.assert_array_equal(trajectory.rows_of(2)[-1], GOAL)
        self.assertEqual(len(trajectory.rows_of(0)), 1)
        self.assertGreaterEqual(len(trajectory.rows_of(1)), 4)
        self.assertGreaterEqual(len(trajectory.rows_of(2)), 4)
        self.assertEqual(list(trajectory.instruction_indices),
                         sorted(trajectory.instruction_indices))

    def test_avoid_obstacle(self):
        env = iiwa14_environment()
        # blocks the direct sweep of the stretched arm
        env.add_sphere('obstacle', 0.1, [0.6, 0.0, 0.36])
        profiles = single_profile(
            planning_time=30.0, collision_safety_margin=0.03,
            longest_valid_segment_fraction=0.002, random_seed=2)
        request = make_request(env, [joint_move(stretched(-0.4), 'start'),
                                     joint_move(stretched(0.4))], profiles)
        response = SamplingMotionPlanner().solve(request)
        self.assertTrue(response.success, response.message)
        self.assertFalse(response.found_collision)

        manager = env.get_discrete_contact_manager()
        manager.set_active_collision_objects(
            env.get_active_link_names(IIWA14_JOINT_NAMES))
        found, _ = check_trajectory(
            manager, env.get_state_solver(), IIWA14_JOINT_NAMES,
            response.trajectory, mode='lvs_discrete',
            longest_valid_segment_length=0.01)
        self.assertFalse(found)

    def test_planner_types(self):
        for configurator in [RRTConnectConfigurator(), RRTConfigurator(),
                             ESTConfigurator(range=0.5)]:
            profiles = single_profile(planning_time=20.0,
                                      configurators=[configurator],
                                      random_seed=3)
            request = make_request(self.env, [joint_move(START, 'start'),
                                              joint_move(GOAL)], profiles)
            response = SamplingMotionPlanner().solve(request)
            self.assertTrue(response.success,
                            '{}: {}'.format(configurator, response.message))
            testing.assert_array_equal(response.trajectory.positions[-1],
                                       GOAL)

    def test_more_planners_succeed_as_often(self):
        def n_successes(n_planners):
            count = 0
            for trial in range(20):
                profiles = single_profile(
                    planning_time=10.0,
                    configurators=[RRTConnectConfigurator()] * n_planners,
                    random_seed=10 * trial)
                request = make_request(self.env,
                                       [joint_move(START, 'start'),
                                        joint_move(GOAL)], profiles)
                if SamplingMotionPlanner().solve(request).success:
                    count += 1
            return count

        self.assertGreaterEqual(n_successes(4), n_successes(1))

    def test_upright_constraint(self):
        constraint = UprightConstraint(normal=[0, 0, -1], tolerance=0.05)
        profiles = single_profile(
            planning_time=60.0, constraint=constraint, simplify=True,
            configurators=[RRTConnectConfigurator(range=0.3)] * 4,
            random_seed=4)
        request = make_request(self.env, [joint_move(tool_down(-0.4),
                                                     'start'),
                                          joint_move(tool_down(0.4))],
                               profiles)
        response = SamplingMotionPlanner().solve(request)
        self.assertTrue(response.success, response.message)
        positions = response.trajectory.positions
        testing.assert_array_equal(positions[0], tool_down(-0.4))
        testing.assert_array_equal(positions[-1], tool_down(0.4))
        group = self.env.get_kinematic_group('manipulator')
        evaluator = ConstraintEvaluator(constraint, group, 'tool0')
        for q in positions:
            self.assertLessEqual(evaluator.distance(q), 0.05 + 1e-6)

    def test_constraint_projection(self):
        group = self.env.get_kinematic_group('manipulator')
        evaluator = ConstraintEvaluator(UprightConstraint(tolerance=0.05),
                                        group, 'tool0')
        q = tool_down(0.0)
        testing.assert_almost_equal(evaluator.distance(q), 0.0347,
                                    decimal=3)
        self.assertTrue(evaluator.is_satisfied(q))
        tilted = q.copy()
        tilted[5] -= 0.3
        self.assertFalse(evaluator.is_satisfied(tilted))
        projected = evaluator.project(tilted)
        self.assertIsNotNone(projected)
        self.assertLessEqual(evaluator.distance(projected), 0.05)
        self.assertEqual(evaluator.jacobian(q).shape, (3, 7))

    def test_invalid_constraint_tolerance(self):
        with self.assertRaises(ValueError):
            UprightConstraint(tolerance=0.0)

    def test_cartesian_goal(self):
        group = self.env.get_kinematic_group('manipulator')
        target = group.calc_fwd_kin(GOAL)
        profiles = single_profile(planning_time=10.0, random_seed=5)
        request = make_request(self.env, [
            joint_move(START, 'start'),
            MoveInstruction(CartesianWaypoint(target))], profiles)
        response = SamplingMotionPlanner().solve(request)
        self.assertTrue(response.success, response.message)
        T = group.calc_fwd_kin(response.trajectory.positions[-1])
        testing.assert_array_almost_equal(T, target, decimal=3)

    def test_unreachable_goal(self):
        target = np.eye(4)
        target[:3, 3] = [3.0, 0.0, 0.5]
        profiles = single_profile(n_ik_attempts=2)
        request = make_request(self.env, [
            joint_move(START, 'start'),
            MoveInstruction(CartesianWaypoint(target))], profiles)
        planner = SamplingMotionPlanner()
        response = planner.solve(request)
        self.assertEqual(response.status, PlannerStatus.INVALID_GOAL)
        self.assertEqual(planner.state, PlannerState.FAILED)

    def test_start_in_collision(self):
        env = iiwa14_environment()
        env.add_sphere('obstacle', 0.1, [0.6, 0.0, 0.36])
        request = make_request(env, [joint_move(stretched(0.0), 'start'),
                                     joint_move(stretched(0.8))])
        response = SamplingMotionPlanner().solve(request)
        self.assertEqual(response.status, PlannerStatus.INVALID_START)
        self.assertFalse(response.segments[1].success)

    def test_create_problems(self):
        profiles = single_profile(planning_time=3.0)
        profiles.add_profile('sampling_plan', 'FAST',
                             SamplingPlanProfile(planning_time=1.0,
                                                 n_output_states=5))
        request = make_request(self.env, [
            joint_move(START, 'start'), joint_move(GOAL),
            joint_move(START, profile='FAST')], profiles)
        problems = SamplingMotionPlanner().create_problems(request)
        self.assertEqual([(p.start_index, p.end_index) for p in problems],
                         [(0, 1), (1, 2)])
        first, second = problems[0].problem, problems[1].problem
        self.assertEqual(first.planning_time, 3.0)
        self.assertEqual(second.planning_time, 1.0)
        self.assertEqual(second.n_output_states, 5)
        testing.assert_array_equal(first.start_states[0], START)
        testing.assert_array_equal(first.goal_states[0], GOAL)
        # later segments start where the previous one ends
        self.assertEqual(second.start_states, [])
        testing.assert_array_equal(second.goal_states[0], START)


class TestSamplingTermination(unittest.TestCase):
    """Requests whose first joint may never cross zero have no solution."""

    def setUp(self):
        self.env = iiwa14_environment()

    def blocked_request(self, planning_time):
        profiles = single_profile(
            planning_time=planning_time,
            configurators=[RRTConnectConfigurator(range=0.3)] * 2,
            state_validity_checker=lambda q: not -0.3 < q[0] < 0.3,
            random_seed=6)
        return make_request(self.env, [joint_move(stretched(-0.4), 'start'),
                                       joint_move(stretched(0.4))],
                            profiles)

    def test_terminate(self):
        planner = SamplingMotionPlanner()
        request = self.blocked_request(60.0)
        timer = threading.Timer(0.2, planner.terminate)
        timer.start()
        try:
            response = planner.solve(request)
        finally:
            timer.cancel()
        self.assertFalse(response.success)
        self.assertEqual(response.status, PlannerStatus.TERMINATED)
        self.assertEqual(planner.state, PlannerState.FAILED)
        self.assertLess(response.planning_time, 30.0)

    def test_timeout(self):
        planner = SamplingMotionPlanner()
        response = planner.solve(self.blocked_request(0.2))
        self.assertEqual(response.status, PlannerStatus.TIMEOUT)
        self.assertEqual(planner.state, PlannerState.FAILED)
        self.assertEqual([s.success for s in response.segments],
                         [True, False])

    def test_trees_grow_across_solves(self):
        planner = SamplingMotionPlanner()
        request = self.blocked_request(0.1)
        planner.solve(request)
        trees = planner.problem[0].problem.planners
        self.assertEqual(len(trees), 2)
        iterations = [p.iterations for p in trees]
        nodes = [p.start_tree.n_nodes for p in trees]

        response = planner.solve(request)
        self.assertEqual(response.status, PlannerStatus.TIMEOUT)
        self.assertIs(planner.problem[0].problem.planners, trees)
        self.assertGreater(sum(p.iterations for p in trees),
                           sum(iterations))
        self.assertGreaterEqual(sum(p.start_tree.n_nodes for p in trees),
                                sum(nodes))

        planner.configure(request)
        self.assertIsNone(planner.problem[0].problem.planners)

    def test_clone(self):
        planner = SamplingMotionPlanner(name='sampler')
        planner.configure(self.blocked_request(0.1))
        cloned = planner.clone()
        self.assertEqual(cloned.name, 'sampler')
        self.assertEqual(cloned.state, PlannerState.IDLE)
        self.assertIsNone(cloned.problem)


class LineSpace(object):

    def __init__(self, project=True, upper=np.inf):
        self.project = project
        self.upper = upper

    def distance(self, q1, q2):
        return float(np.abs(q2 - q1).sum())

    def interpolate(self, q1, q2, fraction):
        if not self.project:
            return None
        return q1 + fraction * (q2 - q1)

    def is_valid(self, q):
        return bool(np.all(q <= self.upper))


class TestInterpolatePath(unittest.TestCase):

    path = [np.zeros(2), np.ones(2)]

    def test_interpolate(self):
        result = interpolate_path(LineSpace(), self.path, n_states=4)
        testing.assert_almost_equal(
            np.array(result),
            [[0, 0], [1 / 3.0, 1 / 3.0], [2 / 3.0, 2 / 3.0], [1, 1]])

    def test_failed_projection_is_left_out(self):
        result = interpolate_path(LineSpace(project=False), self.path,
                                  n_states=4)
        self.assertEqual(len(result), 2)
        testing.assert_array_equal(result[0], self.path[0])
        testing.assert_array_equal(result[1], self.path[1])

    def test_invalid_state_is_left_out(self):
        result = interpolate_path(LineSpace(upper=0.5), self.path,
                                  n_states=4)
        testing.assert_almost_equal(
            np.array(result), [[0, 0], [1 / 3.0, 1 / 3.0], [1, 1]])
