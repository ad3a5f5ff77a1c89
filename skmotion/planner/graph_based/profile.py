import numpy as np

from skmotion.planner.core.profile import PlanProfile
from skmotion.planner.core.utils import joint_positions
from skmotion.planner.core.utils import waypoint_target_in_base
from skmotion.planner.graph_based.samplers import FixedJointSampler
from skmotion.planner.graph_based.samplers import JointDistanceEdgeEvaluator
from skmotion.planner.graph_based.samplers import PoseSampler
from skmotion.planner.graph_based.samplers import StateCollisionChecker


class GraphPlanProfile(PlanProfile):
    """Vertex and edge settings of a graph search step.

    Parameters
    ----------
    n_ik_attempts : int
        inverse kinematics attempts per sampled tool rotation.
    n_rotation_samples : int
        number of rotations about the tool z axis sampled for a
        cartesian waypoint. 1 keeps the target orientation.
    rotation_range : float
        rotations are sampled evenly from ``-rotation_range`` to
        ``rotation_range``.
    vertex_collision_check : bool
        drop cartesian candidates in collision.
    collision_safety_margin : float
        candidates closer than this to a collision are in collision.
    max_step : float
        largest joint motion of an edge into this step. None is
        unlimited.
    edge_collision_check : bool
        drop edges into this step whose motion collides.
    longest_valid_segment_length : float
        joint space resolution of edge collision checks.
    random_seed : int
        seed of inverse kinematics restarts.
    """

    def __init__(self, n_ik_attempts=10, n_rotation_samples=1,
                 rotation_range=np.pi, vertex_collision_check=True,
                 collision_safety_margin=0.0, max_step=None,
                 edge_collision_check=False,
                 longest_valid_segment_length=0.05, random_seed=None):
        if n_rotation_samples < 1:
            raise ValueError('n_rotation_samples must be positive')
        self.n_ik_attempts = n_ik_attempts
        self.n_rotation_samples = n_rotation_samples
        self.rotation_range = rotation_range
        self.vertex_collision_check = vertex_collision_check
        self.collision_safety_margin = collision_safety_margin
        self.max_step = max_step
        self.edge_collision_check = edge_collision_check
        self.longest_valid_segment_length = longest_valid_segment_length
        self.random_seed = random_seed

    def rotation_angles(self):
        if self.n_rotation_samples == 1:
            return [0.0]
        return list(np.linspace(-self.rotation_range, self.rotation_range,
                                self.n_rotation_samples))

    def _collision_checker(self, problem):
        return StateCollisionChecker(
            problem.contact_manager.clone(), problem.state_solver,
            problem.joint_names, self.collision_safety_margin)

    def _set_edge_evaluator(self, problem, index):
        checker = None
        if self.edge_collision_check:
            checker = self._collision_checker(problem)
        problem.edge_evaluators[index] = JointDistanceEdgeEvaluator(
            max_step=self.max_step, collision_checker=checker,
            longest_valid_segment_length=self.longest_valid_segment_length)

    def apply_joint(self, problem, waypoint, parent_instruction,
                    manipulator_info, context, index):
        problem.samplers[index] = FixedJointSampler(
            joint_positions(waypoint, context.joint_names))
        self._set_edge_evaluator(problem, index)

    def apply_cartesian(self, problem, waypoint, parent_instruction,
                        manipulator_info, context, index):
        group = context.kinematic_group
        target = waypoint_target_in_base(waypoint, manipulator_info, group,
                                         context.state_solver)
        checker = None
        if self.vertex_collision_check:
            checker = self._collision_checker(problem)
        random_state = None
        if self.random_seed is not None:
            random_state = self.random_seed + index
        problem.samplers[index] = PoseSampler(
            target, group, manipulator_info.tcp_frame, problem.seed[index],
            angles=self.rotation_angles(), n_ik_attempts=self.n_ik_attempts,
            collision_checker=checker, random_state=random_state)
        self._set_edge_evaluator(problem, index)
