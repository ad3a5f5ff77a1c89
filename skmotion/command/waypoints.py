import numpy as np

from skmotion.coordinates.base import Coordinates
from skmotion.planner.core.errors import JointNameMismatchError


def _readonly(array):
    array = np.array(array, dtype=np.float64)
    array.setflags(write=False)
    return array


class JointWaypoint(object):
    """Joint space target.

    Parameters
    ----------
    positions : list[float] or numpy.ndarray
        joint positions.
    joint_names : list[str]
        names of the joints, in the order of positions.

    Examples
    --------
    >>> from skmotion.command import JointWaypoint
    >>> wp = JointWaypoint([0.1, 0.2], ['j1', 'j2'])
    >>> wp.reordered(['j2', 'j1'])
    array([0.2, 0.1])
    """

    __slots__ = ('_positions', '_joint_names')

    def __init__(self, positions, joint_names):
        positions = _readonly(positions)
        if positions.ndim != 1:
            raise ValueError(
                'Joint positions must be a vector, got shape {}'.format(
                    positions.shape))
        joint_names = tuple(joint_names)
        if len(joint_names) != len(positions):
            raise ValueError(
                'Got {} joint names for {} positions'.format(
                    len(joint_names), len(positions)))
        if len(set(joint_names)) != len(joint_names):
            raise ValueError(
                'Joint names must be unique, got {}'.format(joint_names))
        object.__setattr__(self, '_positions', positions)
        object.__setattr__(self, '_joint_names', joint_names)

    def __setattr__(self, name, value):
        raise AttributeError('JointWaypoint is immutable')

    @property
    def positions(self):
        return self._positions

    @property
    def joint_names(self):
        return list(self._joint_names)

    def __len__(self):
        return len(self._positions)

    def reordered(self, joint_names):
        """Return positions in the order of joint_names.

        Raises
        ------
        JointNameMismatchError
            If joint_names is not the same set as the waypoint joints.
        """
        if set(joint_names) != set(self._joint_names) \
                or len(joint_names) != len(self._joint_names):
            raise JointNameMismatchError(
                'Waypoint joints {} do not match {}'.format(
                    list(self._joint_names), list(joint_names)))
        index = {name: i for i, name in enumerate(self._joint_names)}
        return _readonly([self._positions[index[n]] for n in joint_names])

    def __eq__(self, other):
        if not isinstance(other, JointWaypoint):
            return NotImplemented
        return (self._joint_names == other._joint_names
                and np.array_equal(self._positions, other._positions))

    def __hash__(self):
        return hash((self._joint_names, self._positions.tobytes()))

    def __repr__(self):
        return 'JointWaypoint({}, {})'.format(
            np.round(self._positions, 4).tolist(), list(self._joint_names))


class CartesianWaypoint(object):
    """Cartesian pose target of the tool frame.

    Parameters
    ----------
    pose : skmotion.coordinates.Coordinates or numpy.ndarray
        target pose in the working frame, as Coordinates or a 4x4
        homogeneous matrix.
    """

    __slots__ = ('_pose',)

    def __init__(self, pose):
        if not isinstance(pose, Coordinates):
            pose = Coordinates.from_matrix(pose)
        object.__setattr__(self, '_pose', pose)

    def __setattr__(self, name, value):
        raise AttributeError('CartesianWaypoint is immutable')

    @property
    def pose(self):
        return self._pose

    @property
    def transform(self):
        """4x4 homogeneous matrix of the pose."""
        return self._pose.T()

    def __eq__(self, other):
        if not isinstance(other, CartesianWaypoint):
            return NotImplemented
        return self._pose == other._pose

    def __hash__(self):
        return hash(self._pose)

    def __repr__(self):
        return 'CartesianWaypoint({!r})'.format(self._pose)


WAYPOINT_TYPES = (JointWaypoint, CartesianWaypoint)


def is_joint_waypoint(waypoint):
    return isinstance(waypoint, JointWaypoint)


def is_cartesian_waypoint(waypoint):
    return isinstance(waypoint, CartesianWaypoint)
