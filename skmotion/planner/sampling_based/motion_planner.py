import numpy as np

from skmotion.planner.core.planner import MotionPlanner
from skmotion.planner.core.planner import RawSolution
from skmotion.planner.core.types import PlannerStatus
from skmotion.planner.core.types import PlanningContext
from skmotion.planner.core.types import ProblemConfig
from skmotion.planner.core.types import SegmentStatus
from skmotion.planner.core.utils import apply_waypoint_profile
from skmotion.planner.core.utils import resolve_profile
from skmotion.planner.core.utils import validate_request
from skmotion.planner.sampling_based.parallel import ParallelPlan
from skmotion.planner.sampling_based.parallel import ParallelPlanStatus
from skmotion.planner.sampling_based.path import interpolate_path
from skmotion.planner.sampling_based.path import simplify_path
from skmotion.planner.sampling_based.problem import SamplingProblem
from skmotion.planner.sampling_based.profile import SamplingPlanProfile


def _same_states(states1, states2):
    if states2 is None or len(states1) != len(states2):
        return False
    return all(np.array_equal(a, b) for a, b in zip(states1, states2))


class SamplingMotionPlanner(MotionPlanner):
    """Sampling based motion planner.

    Every pair of consecutive instructions becomes a
    :class:`SamplingProblem` solved by planners running in parallel
    threads. Solving the configured request again keeps growing the
    trees of the previous solve; :meth:`configure` and :meth:`clear`
    discard them.

    Plan profiles are looked up in the ``'sampling_plan'`` namespace.

    Examples
    --------
    >>> from skmotion.planner.sampling_based import SamplingMotionPlanner
    >>> planner = SamplingMotionPlanner()
    >>> response = planner.solve(request)  # doctest: +SKIP
    """

    plan_namespace = 'sampling_plan'

    def _plan_profile(self, request, name):
        return resolve_profile(request.profiles, self.plan_namespace, name,
                               SamplingPlanProfile, SamplingPlanProfile)

    def _check_profiles(self, request, moves):
        for move in moves:
            self._plan_profile(request, move.profile)

    def create_problems(self, request):
        """Validate request and build one problem per instruction pair.

        Returns
        -------
        problems : list[ProblemConfig]
            problems in instruction order.

        Raises
        ------
        ConfigurationError
            If request can not be planned.
        UnreachableWaypointError
            If a cartesian waypoint has no valid IK solution.
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
        manager = request.environment.get_discrete_contact_manager()
        manager.set_active_collision_objects(context.active_links)
        program = request.instructions
        problems = []
        for k, (start, goal) in enumerate(zip(moves[:-1], moves[1:])):
            problem = SamplingProblem(
                context.joint_names, group.get_limits(), manager,
                context.state_solver, start.index, goal.index)
            # the goal profile sets the segment settings used by the
            # start states, later segments start where the previous ends
            applied = [goal] if k > 0 else [goal, start]
            for move in applied:
                apply_waypoint_profile(
                    self._plan_profile(request, move.profile), problem,
                    move,
                    program.get_manipulator_info(
                        move, context.manipulator_info),
                    context, move.index)
            problems.append(ProblemConfig(problem, start.index, goal.index))
        context.logger.debug('Created %d sampling problems', len(problems))
        return problems

    def _segment_statuses(self, problems, failed, message):
        n_moves = problems[-1].end_index + 1
        statuses = []
        for i in range(n_moves):
            if i <= failed.start_index:
                statuses.append(SegmentStatus(i, True, ''))
            elif i == failed.end_index:
                statuses.append(SegmentStatus(i, False, message))
            else:
                statuses.append(SegmentStatus(i, False, 'not planned'))
        return statuses

    def _solve(self, problems, context):
        rows = []
        indices = []
        iterations = 0
        previous_end = None
        for k, config in enumerate(problems):
            problem = config.problem
            if context.is_terminated():
                message = 'Terminated before segment {}'.format(k)
                return RawSolution(
                    PlannerStatus.TERMINATED, message=message,
                    iterations=iterations,
                    segments=self._segment_statuses(problems, config,
                                                    message))
            if previous_end is None:
                start_states = problem.start_states
            else:
                start_states = [previous_end]
            check_space = problem.make_space()
            valid_starts = [q for q in start_states
                            if check_space.is_valid(q)]
            valid_goals = [q for q in problem.goal_states
                           if check_space.is_valid(q)]
            if not valid_starts or not valid_goals:
                if not valid_starts:
                    status = PlannerStatus.INVALID_START
                    message = 'Start state of instruction {} is invalid' \
                        .format(config.start_index)
                else:
                    status = PlannerStatus.INVALID_GOAL
                    message = 'Goal states of instruction {} are invalid' \
                        .format(config.end_index)
                return RawSolution(
                    status, message=message, iterations=iterations,
                    segments=self._segment_statuses(problems, config,
                                                    message))

            if problem.planners is None \
                    or not _same_states(valid_starts, problem.planners_start):
                problem.planners = [
                    configurator.create(problem.make_space(i), valid_starts,
                                        valid_goals)
                    for i, configurator in enumerate(problem.configurators)]
                problem.planners_start = valid_starts
            else:
                context.logger.debug(
                    'Segment %d continues %d existing trees', k,
                    len(problem.planners))
            plan = ParallelPlan(problem.planners, context.termination_event,
                                max_solutions=problem.max_solutions)
            status, path, winner = plan.solve(problem.planning_time)
            iterations += plan.iterations
            if status == ParallelPlanStatus.TERMINATED:
                message = 'Terminated while planning segment {}'.format(k)
                return RawSolution(
                    PlannerStatus.TERMINATED, message=message,
                    iterations=iterations,
                    segments=self._segment_statuses(problems, config,
                                                    message))
            if status == ParallelPlanStatus.TIMEOUT:
                message = 'No path from instruction {} to {} within {} s' \
                    .format(config.start_index, config.end_index,
                            problem.planning_time)
                return RawSolution(
                    PlannerStatus.TIMEOUT, message=message,
                    iterations=iterations,
                    segments=self._segment_statuses(problems, config,
                                                    message))

            space = problem.planners[winner].space
            if problem.simplify:
                path = simplify_path(space, path)
            path = interpolate_path(space, path, problem.n_output_states)
            context.progress(
                'Segment %d solved by planner %d with %d states', k, winner,
                len(path))
            if k == 0:
                rows.append(path[0])
                indices.append(config.start_index)
            rows.extend(path[1:])
            indices.extend([config.end_index] * (len(path) - 1))
            previous_end = path[-1]
        return RawSolution(PlannerStatus.SUCCESS, positions=np.array(rows),
                           instruction_indices=indices,
                           iterations=iterations)
