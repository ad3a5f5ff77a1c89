"""Request, response and per solve types shared by all planners."""

from dataclasses import dataclass
from dataclasses import field
from enum import Enum
import logging
import threading
from typing import List
from typing import Optional

import numpy as np


class PlannerStatus(Enum):
    SUCCESS = 'success'
    INVALID_CONFIGURATION = 'invalid_configuration'
    INVALID_START = 'invalid_start'
    INVALID_GOAL = 'invalid_goal'
    TIMEOUT = 'timeout'
    NO_SOLUTION = 'no_solution'
    INFEASIBLE = 'infeasible'
    TERMINATED = 'terminated'


class PlannerState(Enum):
    IDLE = 'idle'
    CONFIGURED = 'configured'
    SOLVING = 'solving'
    CONVERGED = 'converged'
    FAILED = 'failed'


@dataclass
class ProblemConfig:
    """Built native problem and the instructions anchoring it.

    Attributes
    ----------
    problem : object
        backend native problem.
    start_index : int
        index of the instruction providing the start.
    end_index : int
        index of the instruction providing the goal.
    """
    problem: object
    start_index: int
    end_index: int


@dataclass
class PlannerRequest:
    """Planning request.

    Attributes
    ----------
    instructions : skmotion.command.CompositeInstruction
        program to plan. The first move is the start, the others are
        goals in order.
    environment : skmotion.environment.Environment
        scene to plan in.
    profiles : skmotion.planner.core.profile.ProfileDictionary
        registered profiles. None uses the built in defaults.
    manipulator_info : skmotion.command.ManipulatorInfo
        request wide manipulator info, combined with per instruction
        overrides.
    seed : numpy.ndarray
        initial trajectory for optimizing planners.
    name : str
        request name used in log messages.
    verbose : bool
        log solver progress at INFO level.
    """
    instructions: object
    environment: object
    profiles: Optional[object] = None
    manipulator_info: Optional[object] = None
    seed: Optional[np.ndarray] = None
    name: str = ''
    verbose: bool = False


@dataclass(frozen=True)
class JointTrajectory:
    """Joint trajectory realising a program.

    Attributes
    ----------
    joint_names : tuple(str)
        names of the columns.
    positions : numpy.ndarray
        array shape of (n_rows, n_joints).
    instruction_indices : tuple(int)
        instruction realised by each row.
    """
    joint_names: tuple
    positions: np.ndarray
    instruction_indices: tuple

    def __post_init__(self):
        positions = np.array(self.positions, dtype=np.float64)
        if positions.ndim != 2 or positions.shape[1] != len(self.joint_names):
            raise ValueError(
                'positions must have shape (n, {}), got {}'.format(
                    len(self.joint_names), positions.shape))
        if len(self.instruction_indices) != len(positions):
            raise ValueError(
                'Got {} instruction indices for {} rows'.format(
                    len(self.instruction_indices), len(positions)))
        positions.setflags(write=False)
        object.__setattr__(self, 'positions', positions)
        object.__setattr__(self, 'joint_names', tuple(self.joint_names))
        object.__setattr__(self, 'instruction_indices',
                           tuple(int(i) for i in self.instruction_indices))

    def __len__(self):
        return len(self.positions)

    def rows_of(self, instruction_index):
        """Return the rows realising an instruction."""
        return self.positions[
            [i for i, idx in enumerate(self.instruction_indices)
             if idx == instruction_index]]


@dataclass(frozen=True)
class SegmentStatus:
    index: int
    success: bool
    message: str = ''


@dataclass(frozen=True)
class PlannerResponse:
    """Result of a solve.

    Attributes
    ----------
    success : bool
        whether a trajectory was found.
    status : PlannerStatus
        outcome of the solve.
    message : str
        human readable status message.
    trajectory : JointTrajectory
        solution, None unless success.
    segments : list[SegmentStatus]
        status of every instruction.
    found_collision : bool
        whether post solve validation found a contact. Collisions are
        reported and never change success.
    contacts : list[list[skmotion.collision.ContactResult]]
        contacts per trajectory row.
    path_length : float
        sum of L1 norms of consecutive row differences.
    planning_time : float
        wall clock time of the solve in seconds.
    iterations : int
        solver iterations.
    """
    success: bool
    status: PlannerStatus
    message: str = ''
    trajectory: Optional[JointTrajectory] = None
    segments: List[SegmentStatus] = field(default_factory=list)
    found_collision: bool = False
    contacts: list = field(default_factory=list)
    path_length: float = 0.0
    planning_time: float = 0.0
    iterations: int = 0


class PlanningContext(object):
    """Handles of one solve threaded through problem building and solving.

    Parameters
    ----------
    environment : skmotion.environment.Environment
        scene of the request.
    kinematic_group : skmotion.environment.KinematicGroup
        group of the request manipulator.
    manipulator_info : skmotion.command.ManipulatorInfo
        request wide manipulator info.
    planner_name : str
        name put into log records.
    verbose : bool
        log solver progress at INFO instead of DEBUG.
    termination_event : threading.Event
        set to request cooperative termination.
    """

    def __init__(self, environment, kinematic_group, manipulator_info,
                 planner_name='', verbose=False, termination_event=None,
                 logger=None):
        self.environment = environment
        self.kinematic_group = kinematic_group
        self.manipulator_info = manipulator_info
        self.state_solver = environment.get_state_solver()
        self.verbose = verbose
        if termination_event is None:
            termination_event = threading.Event()
        self.termination_event = termination_event
        if logger is None:
            logger = logging.getLogger('skmotion.planner')
        self.logger = logging.LoggerAdapter(logger,
                                            {'planner': planner_name})
        self._active_links = None

    @property
    def joint_names(self):
        return self.kinematic_group.get_joint_names()

    @property
    def active_links(self):
        """Links moved by the kinematic group joints."""
        if self._active_links is None:
            self._active_links = self.environment.get_active_link_names(
                self.joint_names)
        return list(self._active_links)

    def is_terminated(self):
        return self.termination_event.is_set()

    def progress(self, msg, *args):
        """Log solver progress at INFO if verbose, else at DEBUG."""
        level = logging.INFO if self.verbose else logging.DEBUG
        self.logger.log(level, msg, *args)
