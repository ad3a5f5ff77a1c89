"""Post solve validation of joint trajectories."""

from dataclasses import dataclass
from dataclasses import field
from logging import getLogger

import numpy as np

from skmotion.collision.contact_manager import ContinuousContactManager


logger = getLogger(__name__)

CHECK_MODES = ('discrete', 'lvs_discrete', 'continuous')


@dataclass
class ValidationResult:
    """Result of a trajectory validation.

    Attributes
    ----------
    found_collision : bool
        whether any contact was found.
    contacts : list[list[ContactResult]]
        contacts per row, or per segment for interpolated modes.
    path_length : float
        sum of L1 norms of consecutive row differences.
    """
    found_collision: bool
    contacts: list = field(default_factory=list)
    path_length: float = 0.0


def _positions(trajectory):
    return np.atleast_2d(np.asarray(getattr(trajectory, 'positions',
                                            trajectory), dtype=np.float64))


def trajectory_path_length(trajectory):
    """Return the sum of L1 norms of consecutive row differences.

    Parameters
    ----------
    trajectory : JointTrajectory or numpy.ndarray
        trajectory rows.

    Returns
    -------
    length : float
        L1 path length. 0.0 for fewer than two rows.
    """
    positions = _positions(trajectory)
    if len(positions) < 2:
        return 0.0
    return float(np.sum(np.abs(np.diff(positions, axis=0))))


def _substates(q0, q1, longest_valid_segment_length):
    n = max(1, int(np.ceil(
        np.max(np.abs(q1 - q0)) / longest_valid_segment_length)))
    fractions = np.linspace(0.0, 1.0, n + 1)[:, None]
    return q0 + fractions * (q1 - q0)


def check_trajectory(manager, state_solver, joint_names, trajectory,
                     mode='discrete', longest_valid_segment_length=0.005):
    """Check a trajectory for contacts.

    Parameters
    ----------
    manager : DiscreteContactManager or ContinuousContactManager
        manager with active objects and contact threshold already set.
    state_solver : skmotion.environment.StateSolver
        solver computing link transforms.
    joint_names : list[str]
        names of the trajectory columns.
    trajectory : JointTrajectory or numpy.ndarray
        rows to check.
    mode : str
        'discrete' checks every row. 'lvs_discrete' checks states
        interpolated along each segment so that no joint moves more
        than longest_valid_segment_length between them.
        'continuous' checks the motion between these states with
        :meth:`ContinuousContactManager.contact_test_motion`.
    longest_valid_segment_length : float
        joint space resolution of interpolated modes.

    Returns
    -------
    found : bool
        whether any contact was found.
    contacts : list[list[ContactResult]]
        contacts per row for 'discrete', per segment otherwise.
    """
    if mode not in CHECK_MODES:
        raise ValueError('Invalid check mode {}. Valid modes are {}'.format(
            mode, CHECK_MODES))
    if longest_valid_segment_length <= 0:
        raise ValueError('longest_valid_segment_length must be positive')
    if mode == 'continuous' \
            and not isinstance(manager, ContinuousContactManager):
        raise ValueError('continuous mode requires a '
                         'ContinuousContactManager')
    positions = _positions(trajectory)

    def link_transforms(q):
        return state_solver.get_state(joint_names, q)

    contacts = []
    if mode == 'discrete' or len(positions) < 2:
        for row in positions:
            manager.set_collision_objects_transform(link_transforms(row))
            contacts.append(manager.contact_test())
    else:
        for q0, q1 in zip(positions[:-1], positions[1:]):
            states = _substates(q0, q1, longest_valid_segment_length)
            segment_contacts = []
            if mode == 'lvs_discrete':
                for q in states:
                    manager.set_collision_objects_transform(
                        link_transforms(q))
                    segment_contacts.extend(manager.contact_test())
            else:
                for qa, qb in zip(states[:-1], states[1:]):
                    segment_contacts.extend(manager.contact_test_motion(
                        link_transforms(qa), link_transforms(qb)))
            contacts.append(segment_contacts)
    found = any(len(c) > 0 for c in contacts)
    return found, contacts


class TrajectoryValidator(object):
    """Collision validator of planner output.

    Parameters
    ----------
    environment : skmotion.environment.Environment
        scene to validate in.
    manipulator_info : skmotion.command.ManipulatorInfo
        manipulator whose links are the active collision objects.
    contact_distance : float
        contacts closer than this are reported.
    mode : str
        check mode, see :func:`check_trajectory`.
    longest_valid_segment_length : float
        joint space resolution of interpolated modes.
    """

    def __init__(self, environment, manipulator_info, contact_distance=0.0,
                 mode='discrete', longest_valid_segment_length=0.005):
        if mode not in CHECK_MODES:
            raise ValueError(
                'Invalid check mode {}. Valid modes are {}'.format(
                    mode, CHECK_MODES))
        self.environment = environment
        self.manipulator_info = manipulator_info
        self.contact_distance = contact_distance
        self.mode = mode
        self.longest_valid_segment_length = longest_valid_segment_length

    def validate(self, trajectory):
        """Validate a trajectory.

        Parameters
        ----------
        trajectory : JointTrajectory
            trajectory to validate.

        Returns
        -------
        result : ValidationResult
            contacts and path length of trajectory.
        """
        group = self.environment.get_kinematic_group(
            self.manipulator_info.manipulator)
        if self.mode == 'continuous':
            manager = self.environment.get_continuous_contact_manager()
        else:
            manager = self.environment.get_discrete_contact_manager()
        manager.set_active_collision_objects(
            self.environment.get_active_link_names(group.get_joint_names()))
        manager.set_contact_distance_threshold(self.contact_distance)
        found, contacts = check_trajectory(
            manager, self.environment.get_state_solver(),
            list(trajectory.joint_names), trajectory, mode=self.mode,
            longest_valid_segment_length=self.longest_valid_segment_length)
        path_length = trajectory_path_length(trajectory)
        if found:
            n_bad = sum(1 for c in contacts if c)
            logger.warning(
                'Trajectory has contacts in %d of %d %s', n_bad,
                len(contacts),
                'rows' if self.mode == 'discrete' else 'segments')
        return ValidationResult(found_collision=found, contacts=contacts,
                                path_length=path_length)
