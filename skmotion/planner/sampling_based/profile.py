import numpy as np

from skmotion.planner.core.errors import ConfigurationError
from skmotion.planner.core.errors import UnreachableWaypointError
from skmotion.planner.core.profile import PlanProfile
from skmotion.planner.core.utils import joint_positions
from skmotion.planner.core.utils import waypoint_target_in_base
from skmotion.planner.sampling_based.constraint import ConstraintEvaluator
from skmotion.planner.sampling_based.planners import RRTConnectConfigurator


class SamplingPlanProfile(PlanProfile):
    """Plan profile of sampling based planning.

    The profile of the start instruction fills the start states. The
    profile of the goal instruction fills the goal states and the
    settings of the segment.

    Parameters
    ----------
    planning_time : float
        wall clock limit of the segment in seconds.
    max_solutions : int
        paths collected before the workers stop.
    simplify : bool
        shortcut the path before interpolation.
    n_output_states : int
        minimum number of states of the output path of the segment.
    collision_safety_margin : float
        states closer than this to a collision are invalid.
    longest_valid_segment_fraction : float
        motion check resolution as a fraction of the space extent.
    configurators : list[PlannerConfigurator]
        one planner per entry runs in parallel. Defaults to a single
        RRT-Connect.
    constraint : PoseConstraint
        constraint every state must satisfy.
    n_ik_attempts : int
        inverse kinematics attempts of a cartesian waypoint.
    random_seed : int
        seed of the samplers. Worker i uses random_seed + i.
    state_validity_checker : callable
        additional check ``f(q) -> bool``. Not persisted.
    """

    def __init__(self, planning_time=5.0, max_solutions=1, simplify=False,
                 n_output_states=20, collision_safety_margin=0.0,
                 longest_valid_segment_fraction=0.01, configurators=None,
                 constraint=None, n_ik_attempts=20, random_seed=None,
                 state_validity_checker=None):
        if planning_time <= 0:
            raise ValueError('planning_time must be positive')
        if n_output_states < 2:
            raise ValueError('n_output_states must be at least 2')
        self.planning_time = planning_time
        self.max_solutions = max_solutions
        self.simplify = simplify
        self.n_output_states = n_output_states
        self.collision_safety_margin = collision_safety_margin
        self.longest_valid_segment_fraction = longest_valid_segment_fraction
        if configurators is None:
            configurators = [RRTConnectConfigurator()]
        if len(configurators) == 0:
            raise ValueError('configurators must not be empty')
        self.configurators = list(configurators)
        self.constraint = constraint
        self.n_ik_attempts = n_ik_attempts
        self.random_seed = random_seed
        self.state_validity_checker = state_validity_checker

    def _apply_settings(self, problem, manipulator_info, context):
        if not self.configurators:
            raise ConfigurationError(
                'Sampling plan profile has no planner configurators')
        problem.planning_time = self.planning_time
        problem.max_solutions = self.max_solutions
        problem.simplify = self.simplify
        problem.n_output_states = self.n_output_states
        problem.collision_safety_margin = self.collision_safety_margin
        problem.longest_valid_segment_fraction = \
            self.longest_valid_segment_fraction
        problem.configurators = list(self.configurators)
        problem.random_seed = self.random_seed
        problem.state_validity_checker = self.state_validity_checker
        if self.constraint is not None:
            problem.constraint = ConstraintEvaluator(
                self.constraint, context.kinematic_group,
                manipulator_info.tcp_frame)
        else:
            problem.constraint = None

    def _set_states(self, problem, states, index):
        if index == problem.start_index:
            problem.start_states = states
        else:
            problem.goal_states = states

    def apply_joint(self, problem, waypoint, parent_instruction,
                    manipulator_info, context, index):
        if index != problem.start_index:
            self._apply_settings(problem, manipulator_info, context)
        q = joint_positions(waypoint, context.joint_names)
        self._set_states(problem, [q], index)

    def apply_cartesian(self, problem, waypoint, parent_instruction,
                        manipulator_info, context, index):
        if index != problem.start_index:
            self._apply_settings(problem, manipulator_info, context)
        group = context.kinematic_group
        target = waypoint_target_in_base(waypoint, manipulator_info, group,
                                         context.state_solver)
        current = context.state_solver.get_current_state()
        seed = np.array([current[name] for name in context.joint_names])
        solutions = group.calc_inv_kin(
            target, seed, link_name=manipulator_info.tcp_frame,
            n_attempts=self.n_ik_attempts,
            random_state=self.random_seed)
        space = problem.make_space()
        states = [q for q in solutions if space.is_valid(q)]
        context.logger.debug(
            'Instruction %d: %d of %d IK solutions are valid', index,
            len(states), len(solutions))
        if not states:
            raise UnreachableWaypointError(
                'No valid IK solution for cartesian waypoint of '
                'instruction {}'.format(index), index=index)
        self._set_states(problem, states, index)
