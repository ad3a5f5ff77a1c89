"""Solve driver shared by all motion planners."""

from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from dataclasses import replace
import threading
import time
from typing import Optional

import numpy as np

from skmotion.planner.core.errors import ConfigurationError
from skmotion.planner.core.errors import UnreachableWaypointError
from skmotion.planner.core.types import JointTrajectory
from skmotion.planner.core.types import PlannerResponse
from skmotion.planner.core.types import PlannerState
from skmotion.planner.core.types import PlannerStatus
from skmotion.planner.core.types import PlanningContext
from skmotion.planner.core.types import SegmentStatus
from skmotion.planner.core.utils import validate_request
from skmotion.planner.validation import TrajectoryValidator


@dataclass
class RawSolution:
    """Output of a backend solve before translation.

    Attributes
    ----------
    status : PlannerStatus
        outcome of the solve.
    positions : numpy.ndarray
        rows in group joint order, None unless SUCCESS.
    instruction_indices : list[int]
        instruction realised by each row.
    message : str
        status message.
    iterations : int
        solver iterations.
    segments : list[SegmentStatus]
        per instruction status. Derived from the rows when None.
    """
    status: PlannerStatus
    positions: Optional[np.ndarray] = None
    instruction_indices: Optional[list] = None
    message: str = ''
    iterations: int = 0
    segments: Optional[list] = None


class MotionPlanner(ABC):
    """Base class of motion planners.

    The planner moves through :class:`PlannerState`
    ``IDLE -> CONFIGURED -> SOLVING -> CONVERGED | FAILED``.
    :meth:`configure` validates a request and builds the native
    problem. :meth:`solve` configures the request when needed, runs the
    backend and translates its output into a :class:`PlannerResponse`.
    :meth:`solve` never raises for configuration or solve failures; they
    are reported by the response status.

    Parameters
    ----------
    name : str
        planner name used in log records. Defaults to the class name.
    """

    def __init__(self, name=None):
        self.name = name or self.__class__.__name__
        self._state = PlannerState.IDLE
        self._lock = threading.RLock()
        self._termination_event = threading.Event()
        self._request = None
        self._revision = None
        self._moves = None
        self._context = None
        self._problem = None

    @property
    def state(self):
        return self._state

    @property
    def problem(self):
        """Native problem of the configured request."""
        return self._problem

    def configure(self, request):
        """Validate request and build its native problem.

        Raises
        ------
        ConfigurationError
            If request can not be planned.
        UnreachableWaypointError
            If a waypoint has no valid joint configuration.
        """
        with self._lock:
            self.clear()
            moves, info, group = validate_request(request)
            context = PlanningContext(
                request.environment, group, info, planner_name=self.name,
                verbose=request.verbose,
                termination_event=self._termination_event)
            self._check_profiles(request, moves)
            problem = self._create_problem(request, moves, context)
            self._request = request
            self._revision = request.environment.revision
            self._moves = moves
            self._context = context
            self._problem = problem
            self._state = PlannerState.CONFIGURED
            context.logger.debug('Configured request %r with %d instructions',
                                 request.name, len(moves))

    def _needs_configure(self, request):
        return (self._state == PlannerState.IDLE
                or request is not self._request
                or request.environment.revision != self._revision)

    def terminate(self):
        """Request termination of the running solve.

        The solve returns at its next poll point with status
        TERMINATED.
        """
        self._termination_event.set()

    def clear(self):
        """Discard the configured problem and return to IDLE."""
        with self._lock:
            self._request = None
            self._revision = None
            self._moves = None
            self._context = None
            self._problem = None
            self._state = PlannerState.IDLE

    def clone(self):
        """Return an unconfigured planner of the same kind."""
        return self.__class__(name=self.name)

    def _failure(self, status, message, start, n_moves=0, iterations=0):
        self._state = PlannerState.FAILED
        return PlannerResponse(
            success=False, status=status, message=message,
            segments=[SegmentStatus(i, False, message)
                      for i in range(n_moves)],
            planning_time=time.perf_counter() - start,
            iterations=iterations)

    def solve(self, request):
        """Plan a request.

        Returns
        -------
        response : PlannerResponse
            result of the solve.
        """
        start = time.perf_counter()
        with self._lock:
            self._termination_event.clear()
            try:
                if self._needs_configure(request):
                    self.configure(request)
            except ConfigurationError as e:
                return self._failure(PlannerStatus.INVALID_CONFIGURATION,
                                     str(e), start)
            except UnreachableWaypointError as e:
                n_moves = len(request.instructions.flatten())
                status = PlannerStatus.INVALID_START if e.index == 0 \
                    else PlannerStatus.INVALID_GOAL
                return self._failure(status, str(e), start, n_moves)

            context = self._context
            n_moves = len(self._moves)
            self._state = PlannerState.SOLVING
            try:
                with request.environment.solve_guard():
                    return self._run(request, context, start, n_moves)
            finally:
                # an exception escaping the backend ends the solve
                if self._state == PlannerState.SOLVING:
                    self._state = PlannerState.FAILED

    def _run(self, request, context, start, n_moves):
        try:
            raw = self._solve(self._problem, context)
        except UnreachableWaypointError as e:
            status = PlannerStatus.INVALID_START if e.index == 0 \
                else PlannerStatus.INVALID_GOAL
            return self._failure(status, str(e), start, n_moves)
        except ConfigurationError as e:
            return self._failure(PlannerStatus.INVALID_CONFIGURATION,
                                 str(e), start, n_moves)
        if raw.status != PlannerStatus.SUCCESS:
            context.logger.info('Planning failed with %s: %s',
                                raw.status.name, raw.message)
            response = self._failure(raw.status, raw.message, start,
                                     n_moves, raw.iterations)
            if raw.segments is not None:
                response = replace(response, segments=list(raw.segments))
            return response
        return self._translate(request, raw, context, start, n_moves)

    def _translate(self, request, raw, context, start, n_moves):
        trajectory = JointTrajectory(
            joint_names=context.joint_names, positions=raw.positions,
            instruction_indices=raw.instruction_indices)
        validation = self._make_validator(request, context).validate(
            trajectory)
        if raw.segments is not None:
            segments = list(raw.segments)
        else:
            realised = set(trajectory.instruction_indices)
            segments = [SegmentStatus(i, i in realised,
                                      '' if i in realised else 'no rows')
                        for i in range(n_moves)]
        planning_time = time.perf_counter() - start
        context.logger.info(
            'Planning took %.3f s, trajectory L1 norm %.4f',
            planning_time, validation.path_length)
        self._state = PlannerState.CONVERGED
        return PlannerResponse(
            success=True, status=PlannerStatus.SUCCESS,
            message=raw.message or 'Found valid solution',
            trajectory=trajectory, segments=segments,
            found_collision=validation.found_collision,
            contacts=validation.contacts,
            path_length=validation.path_length,
            planning_time=planning_time, iterations=raw.iterations)

    def _make_validator(self, request, context):
        return TrajectoryValidator(request.environment,
                                   context.manipulator_info)

    def _check_profiles(self, request, moves):
        """Resolve every profile named by the request.

        Raises ProfileNotFoundError for unknown names.
        """

    @abstractmethod
    def _create_problem(self, request, moves, context):
        """Build the native problem of a validated request."""

    @abstractmethod
    def _solve(self, problem, context):
        """Solve problem and return a :class:`RawSolution`."""
