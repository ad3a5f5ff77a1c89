import numpy as np

from skmotion.command.waypoints import CartesianWaypoint
from skmotion.planner.core.errors import ConfigurationError
from skmotion.planner.core.planner import MotionPlanner
from skmotion.planner.core.planner import RawSolution
from skmotion.planner.core.types import PlannerStatus
from skmotion.planner.core.types import PlanningContext
from skmotion.planner.core.utils import apply_waypoint_profile
from skmotion.planner.core.utils import joint_anchor_seed
from skmotion.planner.core.utils import resolve_profile
from skmotion.planner.core.utils import validate_request
from skmotion.planner.core.utils import waypoint_target_in_base
from skmotion.planner.sqp_based.problem import SQPProblem
from skmotion.planner.sqp_based.profile import SQPCompositeProfile
from skmotion.planner.sqp_based.profile import SQPPlanProfile
from skmotion.planner.sqp_based.profile import SQPSolverProfile
from skmotion.planner.sqp_based.solver import SQPStatus
from skmotion.planner.sqp_based.solver import TrustRegionSQP


_STATUS_MAP = {
    SQPStatus.ITERATION_LIMIT: PlannerStatus.NO_SOLUTION,
    SQPStatus.TIME_LIMIT: PlannerStatus.TIMEOUT,
    SQPStatus.PENALTY_ITERATION_LIMIT: PlannerStatus.INFEASIBLE,
    SQPStatus.TERMINATED: PlannerStatus.TERMINATED,
}


class SQPMotionPlanner(MotionPlanner):
    """Trajectory optimization planner.

    The trajectory has one step per move instruction. Profiles are
    looked up in the ``'sqp_plan'`` (per waypoint), ``'sqp_composite'``
    (per composite instruction) and ``'sqp_solver'`` (named by the
    program profile) namespaces.

    Examples
    --------
    >>> from skmotion.planner.sqp_based import SQPMotionPlanner
    >>> planner = SQPMotionPlanner()
    >>> response = planner.solve(request)  # doctest: +SKIP
    """

    plan_namespace = 'sqp_plan'
    composite_namespace = 'sqp_composite'
    solver_namespace = 'sqp_solver'

    def _plan_profile(self, request, name):
        return resolve_profile(request.profiles, self.plan_namespace, name,
                               SQPPlanProfile, SQPPlanProfile)

    def _composite_profile(self, request, name):
        return resolve_profile(request.profiles, self.composite_namespace,
                               name, SQPCompositeProfile, SQPCompositeProfile)

    def _solver_profile(self, request, name):
        return resolve_profile(request.profiles, self.solver_namespace, name,
                               SQPSolverProfile, SQPSolverProfile)

    def _check_profiles(self, request, moves):
        for move in moves:
            self._plan_profile(request, move.profile)
        for composite, _, _ in request.instructions.composite_ranges():
            self._composite_profile(request, composite.profile)
        self._solver_profile(request, request.instructions.profile)

    def create_problem(self, request):
        """Validate request and build its optimization problem.

        Returns
        -------
        problem : SQPProblem
            problem with terms, solver settings and seed.

        Raises
        ------
        ConfigurationError
            If request can not be planned.
        """
        moves, info, group = validate_request(request)
        self._check_profiles(request, moves)
        context = PlanningContext(
            request.environment, group, info, planner_name=self.name,
            verbose=request.verbose,
            termination_event=self._termination_event)
        return self._create_problem(request, moves, context)

    def _create_problem(self, request, moves, context):
        group = context.kinematic_group
        program = request.instructions
        manager = request.environment.get_discrete_contact_manager()
        manager.set_active_collision_objects(context.active_links)
        problem = SQPProblem(
            context.joint_names, group.get_limits(), len(moves),
            contact_manager=manager, state_solver=context.state_solver,
            velocity_limits=group.get_velocity_limits())

        for move in moves:
            apply_waypoint_profile(
                self._plan_profile(request, move.profile), problem, move,
                program.get_manipulator_info(move, context.manipulator_info),
                context, move.index)
        for composite, start, end in program.composite_ranges():
            info = context.manipulator_info
            if composite.manipulator_info is not None:
                info = composite.manipulator_info.get_combined(info)
            self._composite_profile(request, composite.profile).apply(
                problem, start, end, info, context.active_links,
                sorted(problem.fixed_steps), context)
        self._solver_profile(request, program.profile).apply(
            problem, context)

        problem.set_seed(self._seed(request, moves, problem, context))
        context.logger.debug(
            'Created SQP problem: %d steps, %d fixed, %d terms',
            problem.n_steps, len(problem.fixed_steps), len(problem.terms))
        return problem

    def _seed(self, request, moves, problem, context):
        shape = (problem.n_steps, problem.n_dof)
        if request.seed is not None:
            seed = np.asarray(request.seed, dtype=np.float64)
            if seed.shape != shape:
                raise ConfigurationError(
                    'seed must have one row per instruction, shape {}, got '
                    '{}'.format(shape, seed.shape))
            return seed
        current = context.state_solver.get_current_state()
        current = np.array([current[name] for name in context.joint_names])
        seed = joint_anchor_seed(moves, context.joint_names, current)
        group = context.kinematic_group
        program = request.instructions
        # start cartesian steps at an IK solution near the line seed
        for move in moves:
            if not isinstance(move.waypoint, CartesianWaypoint):
                continue
            info = program.get_manipulator_info(move,
                                                context.manipulator_info)
            target = waypoint_target_in_base(
                move.waypoint, info, group, context.state_solver)
            solutions = group.calc_inv_kin(
                target, seed[move.index], link_name=info.tcp_frame)
            if solutions:
                seed[move.index] = solutions[0]
        return seed

    def _solve(self, problem, context):
        solver = TrustRegionSQP(problem, context.termination_event)
        result = solver.solve()
        context.progress(
            'SQP %s after %d iterations, constraint violation %g',
            result.status.name, result.iterations,
            result.constraint_violation)
        if not result.success:
            return RawSolution(
                _STATUS_MAP[result.status],
                message='Optimization stopped with {}, constraint '
                'violation {:g}'.format(result.status.name,
                                        result.constraint_violation),
                iterations=result.iterations)
        return RawSolution(
            PlannerStatus.SUCCESS, positions=result.trajectory,
            instruction_indices=list(range(problem.n_steps)),
            iterations=result.iterations)
