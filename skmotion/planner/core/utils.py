from logging import getLogger

import numpy as np

from skmotion.command.instruction import CompositeInstruction
from skmotion.command.instruction import DEFAULT_PROFILE
from skmotion.command.manipulator_info import ManipulatorInfo
from skmotion.command.waypoints import CartesianWaypoint
from skmotion.command.waypoints import JointWaypoint
from skmotion.coordinates.math import inverse_transform
from skmotion.planner.core.errors import ConfigurationError
from skmotion.planner.core.errors import EmptyInstructionsError
from skmotion.planner.core.errors import ProfileNotFoundError
from skmotion.planner.core.errors import UnknownManipulatorError
from skmotion.planner.core.errors import UnsupportedWaypointError


logger = getLogger(__name__)


def apply_waypoint_profile(profile, problem, instruction, manipulator_info,
                           context, index):
    """Apply a plan profile to the waypoint of an instruction.

    Joint waypoints go to ``apply_joint`` and cartesian waypoints to
    ``apply_cartesian``.

    Raises
    ------
    UnsupportedWaypointError
        If the waypoint is of any other type.
    """
    waypoint = instruction.waypoint
    if isinstance(waypoint, JointWaypoint):
        return profile.apply_joint(problem, waypoint, instruction,
                                   manipulator_info, context, index)
    if isinstance(waypoint, CartesianWaypoint):
        return profile.apply_cartesian(problem, waypoint, instruction,
                                       manipulator_info, context, index)
    raise UnsupportedWaypointError(
        'Instruction {} has unsupported waypoint type {}'.format(
            index, type(waypoint).__name__))


def resolve_profile(profiles, namespace, name, profile_type,
                    default_factory):
    """Return the profile registered under namespace and name.

    An empty name means ``'DEFAULT'``. When ``'DEFAULT'`` is not
    registered, ``default_factory()`` is returned.

    Raises
    ------
    ProfileNotFoundError
        If a non default name is not registered.
    ConfigurationError
        If the registered profile is not a profile_type.
    """
    name = name or DEFAULT_PROFILE
    if profiles is not None and profiles.has_profile(namespace, name):
        profile = profiles.get_profile(namespace, name)
        if not isinstance(profile, profile_type):
            raise ConfigurationError(
                'Profile {}/{} is a {}, expected {}'.format(
                    namespace, name, type(profile).__name__,
                    profile_type.__name__))
        return profile
    if name == DEFAULT_PROFILE:
        return default_factory()
    raise ProfileNotFoundError(namespace, name)


def validate_request(request):
    """Check a request before any solver resource is allocated.

    Returns
    -------
    moves : list[skmotion.command.MoveInstruction]
        flattened move instructions.
    manipulator_info : skmotion.command.ManipulatorInfo
        effective request wide manipulator info.
    kinematic_group : skmotion.environment.KinematicGroup
        group of the manipulator.

    Raises
    ------
    ConfigurationError
        If the request can not be planned.
    """
    program = request.instructions
    if not isinstance(program, CompositeInstruction):
        raise ConfigurationError(
            'instructions must be a CompositeInstruction, got {}'.format(
                type(program).__name__))
    moves = program.flatten()
    if len(moves) < 2:
        raise EmptyInstructionsError(
            'Request {!r} needs a start and at least one goal instruction, '
            'got {} instructions'.format(request.name, len(moves)))

    info = request.manipulator_info
    if info is not None and not isinstance(info, ManipulatorInfo):
        raise ConfigurationError(
            'manipulator_info must be ManipulatorInfo, got {}'.format(
                type(info).__name__))
    if program.manipulator_info is not None:
        info = program.manipulator_info.get_combined(info)
    if info is None or not info.manipulator:
        raise UnknownManipulatorError(
            'Request {!r} does not name a manipulator'.format(request.name))
    try:
        group = request.environment.get_kinematic_group(info.manipulator)
    except KeyError:
        raise UnknownManipulatorError(
            'Manipulator {} is not a kinematic group of environment {}'
            .format(info.manipulator, request.environment.name))

    joint_names = group.get_joint_names()
    for move in moves:
        waypoint = move.waypoint
        if not isinstance(waypoint, (JointWaypoint, CartesianWaypoint)):
            raise UnsupportedWaypointError(
                'Instruction {} has unsupported waypoint type {}'.format(
                    move.index, type(waypoint).__name__))
        move_info = program.get_manipulator_info(move, info)
        if move_info.manipulator != info.manipulator:
            raise ConfigurationError(
                'Instruction {} uses manipulator {} but the request plans '
                'for {}'.format(move.index, move_info.manipulator,
                                info.manipulator))
        if isinstance(waypoint, JointWaypoint):
            # raises JointNameMismatchError
            waypoint.reordered(joint_names)
        else:
            for kind, frame in (('tcp', move_info.tcp_frame),
                                ('working', move_info.working_frame)):
                if not request.environment.has_link(frame):
                    raise ConfigurationError(
                        'Instruction {} {} frame {!r} is not a link'
                        .format(move.index, kind, frame))
    logger.debug('Validated request %r: %d instructions for %s',
                 request.name, len(moves), info.manipulator)
    return moves, info, group


def joint_positions(waypoint, joint_names):
    """Return positions of a joint waypoint in joint_names order."""
    return np.array(waypoint.reordered(joint_names))


def interpolate_joint(start, end, n_steps):
    """Return n_steps rows linearly interpolated from start to end."""
    start = np.asarray(start, dtype=np.float64)
    end = np.asarray(end, dtype=np.float64)
    fractions = np.linspace(0.0, 1.0, n_steps)[:, None]
    return start + fractions * (end - start)


def joint_anchor_seed(moves, joint_names, current):
    """Straight line seed through the known joint anchors.

    Joint waypoints are anchors. Steps before the first anchor take the
    first anchor; the current state is used when no anchor exists.

    Parameters
    ----------
    moves : list[skmotion.command.MoveInstruction]
        flattened move instructions.
    joint_names : list[str]
        group joint names.
    current : numpy.ndarray
        current joint positions of the group.

    Returns
    -------
    seed : numpy.ndarray
        array shape of (len(moves), n_joints).
    """
    n = len(moves)
    anchors = [(i, joint_positions(m.waypoint, joint_names))
               for i, m in enumerate(moves)
               if isinstance(m.waypoint, JointWaypoint)]
    if not anchors:
        return np.tile(np.asarray(current, dtype=np.float64), (n, 1))
    seed = np.zeros((n, len(joint_names)))
    first_index, first_q = anchors[0]
    seed[:first_index + 1] = first_q
    for (i0, q0), (i1, q1) in zip(anchors[:-1], anchors[1:]):
        seed[i0:i1 + 1] = interpolate_joint(q0, q1, i1 - i0 + 1)
    last_index, last_q = anchors[-1]
    seed[last_index:] = last_q
    return seed


def waypoint_target_in_base(waypoint, manipulator_info, kinematic_group,
                            state_solver):
    """Return a cartesian waypoint pose in the group base frame."""
    transforms = state_solver.get_state()
    base_T = transforms[kinematic_group.base_link]
    working_T = transforms[manipulator_info.working_frame]
    return inverse_transform(base_T).dot(working_T).dot(waypoint.transform)
