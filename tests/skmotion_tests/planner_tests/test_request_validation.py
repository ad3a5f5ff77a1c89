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
from skmotion.planner.core.errors import ConfigurationError
from skmotion.planner.core.errors import EmptyInstructionsError
from skmotion.planner.core.errors import JointNameMismatchError
from skmotion.planner.core.errors import ProfileNotFoundError
from skmotion.planner.core.errors import UnknownManipulatorError
from skmotion.planner.core.errors import UnsupportedWaypointError
from skmotion.planner.core.profile import ProfileDictionary
from skmotion.planner.core.types import PlannerRequest
from skmotion.planner.core.types import PlannerState
from skmotion.planner.core.types import PlannerStatus
from skmotion.planner.core.utils import joint_anchor_seed
from skmotion.planner.core.utils import resolve_profile
from skmotion.planner.core.utils import validate_request
from skmotion.planner.core.utils import waypoint_target_in_base
from skmotion.planner.graph_based import GraphMotionPlanner
from skmotion.planner.graph_based import GraphPlanProfile
from skmotion.planner.sampling_based import SamplingMotionPlanner
from skmotion.planner.sampling_based import SamplingPlanProfile
from skmotion.planner.sqp_based import SQPMotionPlanner


Q0 = np.zeros(7)
Q1 = np.full(7, 0.2)


def joint_move(q, move_type='freespace', **kwargs):
    return MoveInstruction(JointWaypoint(q, IIWA14_JOINT_NAMES), move_type,
                           **kwargs)


class BrokenPlanner(GraphMotionPlanner):

    def _solve(self, problem, context):
        raise RuntimeError('backend failure')


class TestValidateRequest(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.env = iiwa14_environment()
        cls.info = ManipulatorInfo('manipulator', 'tool0')

    def request(self, instructions, info=None, name='validation_test'):
        if info is None:
            info = self.info
        return PlannerRequest(
            instructions=CompositeInstruction(instructions),
            environment=self.env, manipulator_info=info, name=name)

    def test_valid(self):
        moves, info, group = validate_request(self.request(
            [joint_move(Q0, 'start'), joint_move(Q1)]))
        self.assertEqual([m.index for m in moves], [0, 1])
        self.assertEqual(info, self.info)
        self.assertEqual(group.get_joint_names(), IIWA14_JOINT_NAMES)

    def test_program_manipulator_info(self):
        request = PlannerRequest(
            instructions=CompositeInstruction(
                [joint_move(Q0, 'start'), joint_move(Q1)],
                manipulator_info=ManipulatorInfo('manipulator')),
            environment=self.env,
            manipulator_info=ManipulatorInfo(tcp_frame='tool0'))
        _, info, _ = validate_request(request)
        self.assertEqual(info.manipulator, 'manipulator')
        self.assertEqual(info.tcp_frame, 'tool0')

    def test_not_composite(self):
        request = PlannerRequest(instructions=[joint_move(Q0)],
                                 environment=self.env,
                                 manipulator_info=self.info)
        with self.assertRaises(ConfigurationError):
            validate_request(request)

    def test_empty_instructions(self):
        with self.assertRaises(EmptyInstructionsError):
            validate_request(self.request([]))
        with self.assertRaises(EmptyInstructionsError):
            validate_request(self.request([joint_move(Q0, 'start')]))

    def test_unknown_manipulator(self):
        with self.assertRaises(UnknownManipulatorError):
            validate_request(self.request(
                [joint_move(Q0, 'start'), joint_move(Q1)],
                info=ManipulatorInfo('arm', 'tool0')))
        with self.assertRaises(UnknownManipulatorError):
            validate_request(self.request(
                [joint_move(Q0, 'start'), joint_move(Q1)],
                info=ManipulatorInfo(tcp_frame='tool0')))

    def test_joint_name_mismatch(self):
        wrong = MoveInstruction(
            JointWaypoint(Q1, ['joint_{}'.format(i) for i in range(7)]))
        with self.assertRaises(JointNameMismatchError):
            validate_request(self.request([joint_move(Q0, 'start'), wrong]))

    def test_reordered_joint_names(self):
        names = list(reversed(IIWA14_JOINT_NAMES))
        q = np.arange(7) * 0.1
        moves, _, _ = validate_request(self.request([
            joint_move(Q0, 'start'),
            MoveInstruction(JointWaypoint(q, names))]))
        seed = joint_anchor_seed(moves, IIWA14_JOINT_NAMES, Q0)
        testing.assert_almost_equal(seed[1], q[::-1])

    def test_unsupported_waypoint(self):
        with self.assertRaises(UnsupportedWaypointError):
            validate_request(self.request([joint_move(Q0, 'start'),
                                           MoveInstruction('home')]))

    def test_unknown_tcp_frame(self):
        move = MoveInstruction(
            CartesianWaypoint(np.eye(4)),
            manipulator_info=ManipulatorInfo(tcp_frame='gripper'))
        with self.assertRaises(ConfigurationError):
            validate_request(self.request([joint_move(Q0, 'start'), move]))

    def test_unknown_working_frame(self):
        request = self.request(
            [joint_move(Q0, 'start'),
             MoveInstruction(CartesianWaypoint(np.eye(4)))],
            info=ManipulatorInfo('manipulator', 'tool0', 'world'))
        with self.assertRaises(ConfigurationError):
            validate_request(request)
        for planner in [GraphMotionPlanner(), SQPMotionPlanner()]:
            response = planner.solve(request)
            self.assertEqual(response.status,
                             PlannerStatus.INVALID_CONFIGURATION)
            self.assertEqual(planner.state, PlannerState.FAILED)

    def test_joint_program_ignores_working_frame(self):
        validate_request(self.request(
            [joint_move(Q0, 'start'), joint_move(Q1)],
            info=ManipulatorInfo('manipulator', 'tool0', 'world')))

    def test_empty_configurators(self):
        profile = SamplingPlanProfile()
        profile.configurators = []
        profiles = ProfileDictionary()
        profiles.add_profile('sampling_plan', 'DEFAULT', profile)
        request = self.request([joint_move(Q0, 'start'), joint_move(Q1)])
        request.profiles = profiles
        planner = SamplingMotionPlanner()
        response = planner.solve(request)
        self.assertEqual(response.status,
                         PlannerStatus.INVALID_CONFIGURATION)
        self.assertEqual(planner.state, PlannerState.FAILED)

    def test_backend_error_leaves_planner_failed(self):
        planner = BrokenPlanner()
        with self.assertRaises(RuntimeError):
            planner.solve(self.request([joint_move(Q0, 'start'),
                                        joint_move(Q1)]))
        self.assertEqual(planner.state, PlannerState.FAILED)

    def test_other_manipulator(self):
        move = joint_move(Q1, manipulator_info=ManipulatorInfo('other'))
        with self.assertRaises(ConfigurationError):
            validate_request(self.request([joint_move(Q0, 'start'), move]))

    def test_planner_reports_invalid_configuration(self):
        requests = [
            self.request([joint_move(Q0, 'start')]),
            self.request([joint_move(Q0, 'start'), joint_move(Q1)],
                         info=ManipulatorInfo('arm', 'tool0')),
            self.request([joint_move(Q0, 'start'), MoveInstruction('home')]),
            self.request([joint_move(Q0, 'start'),
                          joint_move(Q1, profile='MISSING')]),
        ]
        for planner in [GraphMotionPlanner(), SQPMotionPlanner()]:
            for request in requests:
                response = planner.solve(request)
                self.assertFalse(response.success)
                self.assertEqual(response.status,
                                 PlannerStatus.INVALID_CONFIGURATION)
                self.assertIsNone(response.trajectory)
                self.assertEqual(planner.state, PlannerState.FAILED)


class TestPlannerUtils(unittest.TestCase):

    def test_resolve_profile(self):
        profiles = ProfileDictionary()
        profile = GraphPlanProfile(max_step=0.5)
        profiles.add_profile('graph_plan', 'STEP', profile)
        self.assertIs(resolve_profile(profiles, 'graph_plan', 'STEP',
                                      GraphPlanProfile, GraphPlanProfile),
                      profile)
        default = resolve_profile(profiles, 'graph_plan', '',
                                  GraphPlanProfile, GraphPlanProfile)
        self.assertIsInstance(default, GraphPlanProfile)
        self.assertIsInstance(
            resolve_profile(None, 'graph_plan', 'DEFAULT',
                            GraphPlanProfile, GraphPlanProfile),
            GraphPlanProfile)
        with self.assertRaises(ProfileNotFoundError):
            resolve_profile(profiles, 'graph_plan', 'MISSING',
                            GraphPlanProfile, GraphPlanProfile)

    def test_resolve_profile_type_mismatch(self):
        profiles = ProfileDictionary()
        profiles.add_profile('graph_plan', 'DEFAULT', SamplingPlanProfile())
        with self.assertRaises(ConfigurationError):
            resolve_profile(profiles, 'graph_plan', 'DEFAULT',
                            GraphPlanProfile, GraphPlanProfile)

    def test_joint_anchor_seed(self):
        target = CartesianWaypoint(np.eye(4))
        moves = [joint_move(Q0, 'start'), MoveInstruction(target),
                 MoveInstruction(target), joint_move(Q1)]
        program = CompositeInstruction(moves)
        seed = joint_anchor_seed(program.flatten(), IIWA14_JOINT_NAMES,
                                 np.ones(7))
        self.assertEqual(seed.shape, (4, 7))
        testing.assert_almost_equal(seed[0], Q0)
        testing.assert_almost_equal(seed[1], Q1 / 3.0)
        testing.assert_almost_equal(seed[2], 2.0 * Q1 / 3.0)
        testing.assert_almost_equal(seed[3], Q1)

    def test_joint_anchor_seed_without_anchor(self):
        target = CartesianWaypoint(np.eye(4))
        program = CompositeInstruction([MoveInstruction(target),
                                        MoveInstruction(target)])
        seed = joint_anchor_seed(program.flatten(), IIWA14_JOINT_NAMES,
                                 np.ones(7))
        testing.assert_array_equal(seed, np.ones((2, 7)))

    def test_waypoint_target_in_base(self):
        env = iiwa14_environment()
        group = env.get_kinematic_group('manipulator')
        waypoint = CartesianWaypoint(np.eye(4))
        target = waypoint_target_in_base(
            waypoint, ManipulatorInfo('manipulator', 'tool0'), group,
            env.get_state_solver())
        testing.assert_array_almost_equal(target, np.eye(4))
        target = waypoint_target_in_base(
            waypoint, ManipulatorInfo('manipulator', 'tool0', 'link_1'),
            group, env.get_state_solver())
        testing.assert_array_almost_equal(target[:3, 3], [0, 0, 0.1575])
