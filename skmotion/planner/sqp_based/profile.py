import numpy as np

from skmotion.planner.core.profile import CompositeProfile
from skmotion.planner.core.profile import PlanProfile
from skmotion.planner.core.profile import SolverProfile
from skmotion.planner.core.utils import joint_positions
from skmotion.planner.core.utils import waypoint_target_in_base
from skmotion.planner.sampling_based.constraint import ConstraintEvaluator
from skmotion.planner.sqp_based.problem import TrustRegionParameters
from skmotion.planner.sqp_based.terms import CartesianPoseTerm
from skmotion.planner.sqp_based.terms import CollisionTerm
from skmotion.planner.sqp_based.terms import joint_acceleration_term
from skmotion.planner.sqp_based.terms import joint_jerk_term
from skmotion.planner.sqp_based.terms import joint_position_term
from skmotion.planner.sqp_based.terms import joint_velocity_limit_terms
from skmotion.planner.sqp_based.terms import joint_velocity_term
from skmotion.planner.sqp_based.terms import JointFunctionTerm
from skmotion.planner.sqp_based.terms import PoseConstraintTerm


TERM_TYPES = ('constraint', 'cost')
COLLISION_MODES = ('discrete', 'continuous')


class SQPPlanProfile(PlanProfile):
    """Waypoint terms of trajectory optimization.

    A fixed joint waypoint with ``term_type='constraint'`` removes its
    step from the decision vector. Otherwise the waypoint adds a joint
    position or cartesian pose term, as an equality constraint or as a
    squared cost.

    Parameters
    ----------
    cartesian_coeff : tuple[float]
        coefficients of the 3 translation and 3 rotation errors.
    joint_coeff : float or tuple[float]
        coefficients of the joint position errors.
    term_type : str
        'constraint' or 'cost'.
    """

    def __init__(self, cartesian_coeff=(5.0, 5.0, 5.0, 5.0, 5.0, 5.0),
                 joint_coeff=5.0, term_type='constraint'):
        if term_type not in TERM_TYPES:
            raise ValueError('Invalid term_type {}. Valid types are {}'
                             .format(term_type, TERM_TYPES))
        if len(cartesian_coeff) != 6:
            raise ValueError('cartesian_coeff must have 6 elements')
        self.cartesian_coeff = tuple(cartesian_coeff)
        self.joint_coeff = joint_coeff
        self.term_type = term_type

    @property
    def _kind(self):
        return 'eq' if self.term_type == 'constraint' else 'cost'

    def apply_joint(self, problem, waypoint, parent_instruction,
                    manipulator_info, context, index):
        q = joint_positions(waypoint, context.joint_names)
        if self.term_type == 'constraint' and parent_instruction.fixed:
            problem.fix_step(index, q)
            return
        problem.add_term(joint_position_term(
            index, q, problem.n_steps, weights=self.joint_coeff,
            kind=self._kind))

    def apply_cartesian(self, problem, waypoint, parent_instruction,
                        manipulator_info, context, index):
        group = context.kinematic_group
        target = waypoint_target_in_base(waypoint, manipulator_info, group,
                                         context.state_solver)
        problem.add_term(CartesianPoseTerm(
            index, target, group, manipulator_info.tcp_frame,
            self.cartesian_coeff, kind=self._kind))


class SQPCompositeProfile(CompositeProfile):
    """Terms over the steps of a composite instruction.

    Parameters
    ----------
    velocity_coeff : float
        weight of squared joint velocity. 0 disables the term.
    acceleration_coeff : float
        weight of squared joint acceleration.
    jerk_coeff : float
        weight of squared joint jerk.
    collision_cost : bool
        penalize pairs closer than collision_cost_margin.
    collision_cost_margin : float
        distance below which the cost is active.
    collision_cost_coeff : float
        weight of the collision cost.
    collision_constraint : bool
        constrain pairs to be at least collision_constraint_margin apart.
    collision_constraint_margin : float
        minimum pair distance of the constraint.
    collision_constraint_coeff : float
        weight of the constraint violation in the merit.
    collision_mode : str
        'discrete' checks every step, 'continuous' checks interpolated
        states between consecutive steps.
    longest_valid_segment_length : float
        joint space resolution of continuous checks.
    velocity_limits : bool
        constrain joint motion between steps to ``v_max * dt``.
    dt : float
        time between steps used by the velocity limits.
    constraint : PoseConstraint
        pose constraint of every free step.
    cost_functions : list[callable]
        user defined squared costs ``f(q) -> numpy.ndarray`` of every
        free step. Not persisted.
    constraint_functions : list[callable]
        user defined inequality constraints ``f(q) <= 0`` of every free
        step. Not persisted.
    """

    def __init__(self, velocity_coeff=5.0, acceleration_coeff=1.0,
                 jerk_coeff=0.0, collision_cost=True,
                 collision_cost_margin=0.025, collision_cost_coeff=20.0,
                 collision_constraint=True, collision_constraint_margin=0.01,
                 collision_constraint_coeff=20.0, collision_mode='discrete',
                 longest_valid_segment_length=0.05, velocity_limits=False,
                 dt=1.0, constraint=None, cost_functions=None,
                 constraint_functions=None):
        if collision_mode not in COLLISION_MODES:
            raise ValueError('Invalid collision_mode {}. Valid modes are {}'
                             .format(collision_mode, COLLISION_MODES))
        self.velocity_coeff = velocity_coeff
        self.acceleration_coeff = acceleration_coeff
        self.jerk_coeff = jerk_coeff
        self.collision_cost = collision_cost
        self.collision_cost_margin = collision_cost_margin
        self.collision_cost_coeff = collision_cost_coeff
        self.collision_constraint = collision_constraint
        self.collision_constraint_margin = collision_constraint_margin
        self.collision_constraint_coeff = collision_constraint_coeff
        self.collision_mode = collision_mode
        self.longest_valid_segment_length = longest_valid_segment_length
        self.velocity_limits = velocity_limits
        self.dt = dt
        self.constraint = constraint
        self.cost_functions = cost_functions
        self.constraint_functions = constraint_functions

    def _collision_term(self, problem, steps, active_links, context, margin,
                        coeff, kind):
        manager = problem.contact_manager.clone()
        manager.set_active_collision_objects(active_links)
        return CollisionTerm(
            steps, manager, context.state_solver, problem.joint_names,
            margin, kind=kind, weights=coeff,
            continuous=self.collision_mode == 'continuous',
            longest_valid_segment_length=self.longest_valid_segment_length)

    def apply(self, problem, start_index, end_index, manipulator_info,
              active_links, fixed_indices, context):
        n_steps = problem.n_steps
        n_dof = problem.n_dof
        n_range = end_index - start_index + 1
        fixed = set(fixed_indices)
        free = [s for s in range(start_index, end_index + 1)
                if s not in fixed]

        if self.velocity_coeff > 0 and n_range >= 2:
            problem.add_term(joint_velocity_term(
                start_index, end_index, n_steps, n_dof,
                self.velocity_coeff))
        if self.acceleration_coeff > 0 and n_range >= 3:
            problem.add_term(joint_acceleration_term(
                start_index, end_index, n_steps, n_dof,
                self.acceleration_coeff))
        if self.jerk_coeff > 0 and n_range >= 4:
            problem.add_term(joint_jerk_term(
                start_index, end_index, n_steps, n_dof, self.jerk_coeff))
        if self.velocity_limits and n_range >= 2:
            problem.add_terms(joint_velocity_limit_terms(
                start_index, end_index, n_steps, problem.velocity_limits,
                self.dt))

        if not free:
            return
        if self.collision_mode == 'continuous':
            collision_steps = list(range(start_index, end_index + 1))
        else:
            collision_steps = free
        if self.collision_cost and problem.contact_manager is not None:
            problem.add_term(self._collision_term(
                problem, collision_steps, active_links, context,
                self.collision_cost_margin, self.collision_cost_coeff,
                'cost'))
        if self.collision_constraint and problem.contact_manager is not None:
            problem.add_term(self._collision_term(
                problem, collision_steps, active_links, context,
                self.collision_constraint_margin,
                self.collision_constraint_coeff, 'ineq'))
        if self.constraint is not None:
            evaluator = ConstraintEvaluator(
                self.constraint, context.kinematic_group,
                manipulator_info.tcp_frame)
            problem.add_term(PoseConstraintTerm(free, evaluator))
        for i, function in enumerate(self.cost_functions or []):
            problem.add_term(JointFunctionTerm(
                'user_cost_{}'.format(i), free, function, kind='cost'))
        for i, function in enumerate(self.constraint_functions or []):
            problem.add_term(JointFunctionTerm(
                'user_constraint_{}'.format(i), free, function,
                kind='ineq'))


class SQPSolverProfile(SolverProfile):
    """Trust region settings of the optimization.

    See :class:`skmotion.planner.sqp_based.problem.TrustRegionParameters`
    for the parameters.
    """

    def __init__(self, max_iter=100, trust_box_size=0.1,
                 trust_expand_ratio=1.5, trust_shrink_ratio=0.1,
                 min_trust_box_size=1e-4, min_approx_improve=1e-4,
                 improve_ratio_threshold=0.25, cnt_tolerance=1e-4,
                 initial_merit_error_coeff=10.0,
                 merit_coeff_increase_ratio=10.0,
                 max_merit_coeff_increases=5, max_time=np.inf):
        if max_iter < 1:
            raise ValueError('max_iter must be positive')
        if not 0 < trust_shrink_ratio < 1:
            raise ValueError('trust_shrink_ratio must be in (0, 1)')
        if trust_expand_ratio < 1:
            raise ValueError('trust_expand_ratio must be at least 1')
        self.max_iter = max_iter
        self.trust_box_size = trust_box_size
        self.trust_expand_ratio = trust_expand_ratio
        self.trust_shrink_ratio = trust_shrink_ratio
        self.min_trust_box_size = min_trust_box_size
        self.min_approx_improve = min_approx_improve
        self.improve_ratio_threshold = improve_ratio_threshold
        self.cnt_tolerance = cnt_tolerance
        self.initial_merit_error_coeff = initial_merit_error_coeff
        self.merit_coeff_increase_ratio = merit_coeff_increase_ratio
        self.max_merit_coeff_increases = max_merit_coeff_increases
        self.max_time = max_time

    def apply(self, problem, context):
        problem.parameters = TrustRegionParameters(**self.get_params())
