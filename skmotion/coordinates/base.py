import numpy as np

from skmotion.coordinates.math import make_transform
from skmotion.coordinates.math import matrix2quaternion
from skmotion.coordinates.math import quaternion2matrix
from skmotion.coordinates.math import rotation_error_vector
from skmotion.coordinates.math import rotation_matrix
from skmotion.coordinates.math import rpy_matrix


def _readonly(array):
    array = np.array(array, dtype=np.float64)
    array.setflags(write=False)
    return array


class Coordinates(object):
    """Rigid transform given by translation and rotation.

    Unlike a mutable scene node, a Coordinates never changes after
    construction. Methods such as :meth:`translate` and :meth:`rotate`
    return new instances.

    Parameters
    ----------
    pos : list or numpy.ndarray
        3 dimensional translation.
    rot : list or numpy.ndarray
        3x3 rotation matrix, quaternion in wxyz order, or
        [yaw, pitch, roll] angles.
    name : str
        optional name, e.g. the frame the pose is expressed in.

    Examples
    --------
    >>> from skmotion.coordinates import Coordinates
    >>> c = Coordinates(pos=[0.5, 0.0, 0.4], rot=[0, 0, 3.14159])
    >>> c.worldpos()
    array([0.5, 0. , 0.4])
    """

    def __init__(self, pos=None, rot=None, name=None):
        if pos is None:
            pos = np.zeros(3)
        pos = np.array(pos, dtype=np.float64)
        if pos.shape != (3,):
            raise ValueError(
                'Translation must be 3 dimensional, got shape {}'.format(
                    pos.shape))
        if rot is None:
            rot = np.eye(3)
        rot = np.array(rot, dtype=np.float64)
        if rot.shape == (4,):
            rot = quaternion2matrix(rot)
        elif rot.shape == (3,):
            rot = rpy_matrix(*rot)
        elif rot.shape != (3, 3):
            raise ValueError(
                'Rotation must be a 3x3 matrix, quaternion or rpy, '
                'got shape {}'.format(rot.shape))
        self._translation = _readonly(pos)
        self._rotation = _readonly(rot)
        self.name = name

    @classmethod
    def from_matrix(cls, T, name=None):
        """Create Coordinates from a 4x4 homogeneous matrix."""
        T = np.asarray(T, dtype=np.float64)
        if T.shape != (4, 4):
            raise ValueError(
                'Homogeneous matrix must be 4x4, got shape {}'.format(T.shape))
        return cls(pos=T[:3, 3], rot=T[:3, :3], name=name)

    @property
    def translation(self):
        return self._translation

    @property
    def rotation(self):
        return self._rotation

    @property
    def quaternion(self):
        """Return rotation as quaternion in wxyz order."""
        return matrix2quaternion(self._rotation)

    @property
    def x_axis(self):
        return self._rotation[:, 0]

    @property
    def y_axis(self):
        return self._rotation[:, 1]

    @property
    def z_axis(self):
        return self._rotation[:, 2]

    def worldpos(self):
        return self._translation

    def worldrot(self):
        return self._rotation

    def T(self):
        """Return 4x4 homogeneous transformation matrix.

        Returns
        -------
        matrix : numpy.ndarray
            homogeneous transformation matrix shape of (4, 4)
        """
        return make_transform(self._translation, self._rotation)

    def translate(self, vec, wrt='local'):
        """Return coordinates translated by vec.

        Parameters
        ----------
        vec : list or numpy.ndarray
            translation vector.
        wrt : str
            'local' or 'world'.
        """
        vec = np.asarray(vec, dtype=np.float64)
        if wrt == 'local':
            vec = self._rotation.dot(vec)
        elif wrt != 'world':
            raise ValueError("wrt should be 'local' or 'world'")
        return Coordinates(self._translation + vec, self._rotation,
                           name=self.name)

    def rotate(self, theta, axis, wrt='local'):
        """Return coordinates rotated by theta around axis."""
        rot = rotation_matrix(theta, axis)
        if wrt == 'local':
            new_rot = self._rotation.dot(rot)
        elif wrt == 'world':
            new_rot = rot.dot(self._rotation)
        else:
            raise ValueError("wrt should be 'local' or 'world'")
        return Coordinates(self._translation, new_rot, name=self.name)

    def transform(self, c):
        """Return self * c, i.e. c expressed in the parent of self."""
        return Coordinates(
            self._translation + self._rotation.dot(c.translation),
            self._rotation.dot(c.rotation),
            name=self.name)

    def inverse_transformation(self):
        rot_inv = self._rotation.T
        return Coordinates(-rot_inv.dot(self._translation), rot_inv)

    def difference_position(self, coords):
        """Return translation difference expressed in world frame."""
        return coords.worldpos() - self._translation

    def difference_rotation(self, coords):
        """Return rotation vector from self to coords."""
        return rotation_error_vector(coords.worldrot(), self._rotation)

    def __mul__(self, other):
        return self.transform(other)

    def __eq__(self, other):
        if not isinstance(other, Coordinates):
            return NotImplemented
        return (np.array_equal(self._translation, other._translation)
                and np.array_equal(self._rotation, other._rotation))

    def __hash__(self):
        return hash((self._translation.tobytes(), self._rotation.tobytes()))

    def __repr__(self):
        return '<Coordinates{} pos={} quat={}>'.format(
            '' if self.name is None else ' ' + self.name,
            np.round(self._translation, 4).tolist(),
            np.round(self.quaternion, 4).tolist())
