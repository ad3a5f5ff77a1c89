import networkx as nx
import numpy as np

from skmotion.planner.core.errors import ConfigurationError
from skmotion.planner.core.errors import UnreachableWaypointError
from skmotion.planner.core.planner import MotionPlanner
from skmotion.planner.core.planner import RawSolution
from skmotion.planner.core.types import PlannerStatus
from skmotion.planner.core.types import PlanningContext
from skmotion.planner.core.types import SegmentStatus
from skmotion.planner.core.utils import apply_waypoint_profile
from skmotion.planner.core.utils import joint_anchor_seed
from skmotion.planner.core.utils import resolve_profile
from skmotion.planner.core.utils import validate_request
from skmotion.planner.graph_based.graph import LadderGraph
from skmotion.planner.graph_based.problem import GraphProblem
from skmotion.planner.graph_based.profile import GraphPlanProfile


class GraphMotionPlanner(MotionPlanner):
    """Shortest path search over candidate joint positions.

    Every move instruction becomes a rung of candidate vertices: a joint
    waypoint gives exactly one vertex and a cartesian waypoint gives its
    collision free inverse kinematics solutions. Consecutive rungs are
    connected by edges weighted by joint space distance and the
    trajectory is the cheapest path through all rungs.

    Plan profiles are looked up in the ``'graph_plan'`` namespace.
    """

    plan_namespace = 'graph_plan'

    def _plan_profile(self, request, name):
        return resolve_profile(request.profiles, self.plan_namespace, name,
                               GraphPlanProfile, GraphPlanProfile)

    def _check_profiles(self, request, moves):
        for move in moves:
            self._plan_profile(request, move.profile)

    def create_problem(self, request):
        """Validate request and build its graph problem.

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
        program = request.instructions
        manager = request.environment.get_discrete_contact_manager()
        manager.set_active_collision_objects(context.active_links)
        n_dof = len(context.joint_names)
        if request.seed is not None:
            seed = np.asarray(request.seed, dtype=np.float64)
            if seed.shape != (len(moves), n_dof):
                raise ConfigurationError(
                    'seed must have one row per instruction, shape {}, got '
                    '{}'.format((len(moves), n_dof), seed.shape))
        else:
            current = context.state_solver.get_current_state()
            seed = joint_anchor_seed(
                moves, context.joint_names,
                np.array([current[name] for name in context.joint_names]))
        problem = GraphProblem(context.joint_names, len(moves), manager,
                               context.state_solver, seed)
        for move in moves:
            apply_waypoint_profile(
                self._plan_profile(request, move.profile), problem, move,
                program.get_manipulator_info(move, context.manipulator_info),
                context, move.index)
        return problem

    def _terminated(self, step, n_steps):
        message = 'Terminated at step {}'.format(step)
        return RawSolution(
            PlannerStatus.TERMINATED, message=message,
            segments=[SegmentStatus(i, i < step,
                                    '' if i < step else message)
                      for i in range(n_steps)])

    def _solve(self, problem, context):
        graph = LadderGraph()
        n_steps = problem.n_steps
        for step in range(n_steps):
            if context.is_terminated():
                return self._terminated(step, n_steps)
            vertices = problem.samplers[step].sample()
            if not vertices:
                raise UnreachableWaypointError(
                    'No valid joint positions for instruction {}'.format(
                        step), index=step)
            graph.add_rung(vertices)
            if step > 0:
                n_edges = graph.connect(
                    step - 1, problem.edge_evaluators[step].evaluate)
                context.progress('Step %d: %d vertices, %d edges', step,
                                 len(vertices), n_edges)
                if n_edges == 0:
                    message = 'No valid edge from instruction {} to {}' \
                        .format(step - 1, step)
                    return RawSolution(
                        PlannerStatus.NO_SOLUTION, message=message,
                        segments=[SegmentStatus(i, i < step,
                                                '' if i < step else message)
                                  for i in range(n_steps)])
        if context.is_terminated():
            return self._terminated(n_steps, n_steps)
        try:
            path, cost = graph.shortest_path()
        except nx.NetworkXNoPath:
            return RawSolution(PlannerStatus.NO_SOLUTION,
                               message='No path through all instructions')
        context.progress('Found path with cost %f', cost)
        return RawSolution(PlannerStatus.SUCCESS, positions=np.array(path),
                           instruction_indices=list(range(n_steps)),
                           iterations=graph.graph.number_of_edges())
