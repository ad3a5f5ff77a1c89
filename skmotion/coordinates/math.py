import numpy as np
from scipy.spatial.transform import Rotation


_AXIS_VECTORS = {
    'x': np.array([1.0, 0.0, 0.0]),
    'y': np.array([0.0, 1.0, 0.0]),
    'z': np.array([0.0, 0.0, 1.0]),
    '-x': np.array([-1.0, 0.0, 0.0]),
    '-y': np.array([0.0, -1.0, 0.0]),
    '-z': np.array([0.0, 0.0, -1.0]),
}


def convert_to_axis_vector(axis):
    """Convert axis to a float vector.

    Parameters
    ----------
    axis : str or list or numpy.ndarray
        'x', 'y', 'z', '-x', '-y', '-z' or 3 dimensional vector.

    Returns
    -------
    axis : numpy.ndarray
        axis vector (not normalized).
    """
    if isinstance(axis, str):
        if axis not in _AXIS_VECTORS:
            raise ValueError('Invalid axis name {}. Valid names are {}'.format(
                axis, list(_AXIS_VECTORS.keys())))
        return _AXIS_VECTORS[axis].copy()
    axis = np.array(axis, dtype=np.float64)
    if axis.shape != (3,):
        raise ValueError(
            'Axis must be a 3 dimensional vector, got shape {}'.format(
                axis.shape))
    return axis


def normalize_vector(v, ord=2):
    """Return normalized vector

    Parameters
    ----------
    v : list or numpy.ndarray
        vector
    ord : int (optional)
        ord of np.linalg.norm

    Returns
    -------
    v : numpy.ndarray
        normalized vector. Zero vector is returned as is.

    Examples
    --------
    >>> from skmotion.coordinates.math import normalize_vector
    >>> normalize_vector([0, 3, 4])
    array([0. , 0.6, 0.8])
    """
    v = np.array(v, dtype=np.float64)
    norm = np.linalg.norm(v, ord=ord)
    if norm == 0:
        return v
    return v / norm


def rotation_matrix(theta, axis):
    """Return the rotation matrix of a counterclockwise rotation.

    Parameters
    ----------
    theta : float
        rotation angle in radian.
    axis : str or list or numpy.ndarray
        rotation axis such as 'x' or [0, 0, 1].

    Returns
    -------
    rot : numpy.ndarray
        3x3 rotation matrix.

    Examples
    --------
    >>> import numpy as np
    >>> from skmotion.coordinates.math import rotation_matrix
    >>> np.round(rotation_matrix(np.pi / 2.0, 'z'), 6)
    array([[ 0., -1.,  0.],
           [ 1.,  0.,  0.],
           [ 0.,  0.,  1.]])
    """
    axis = normalize_vector(convert_to_axis_vector(axis))
    return Rotation.from_rotvec(axis * theta).as_matrix()


def rpy_matrix(az, ay, ax):
    """Return rotation matrix from yaw-pitch-roll.

    The matrix is rotated ax around x-axis, then ay around y-axis,
    then az around z-axis, all in the world frame.

    Parameters
    ----------
    az : float
        yaw in radian.
    ay : float
        pitch in radian.
    ax : float
        roll in radian.

    Returns
    -------
    r : numpy.ndarray
        3x3 rotation matrix.
    """
    return Rotation.from_euler('ZYX', [az, ay, ax]).as_matrix()


def matrix2quaternion(m):
    """Return quaternion [w, x, y, z] of a rotation matrix.

    Parameters
    ----------
    m : list or numpy.ndarray
        3x3 rotation matrix

    Returns
    -------
    quaternion : numpy.ndarray
        quaternion in wxyz order.
    """
    m = np.asarray(m, dtype=np.float64)
    x, y, z, w = Rotation.from_matrix(m).as_quat()
    return np.array([w, x, y, z])


def quaternion2matrix(q):
    """Return rotation matrix of quaternion [w, x, y, z].

    Parameters
    ----------
    q : list or numpy.ndarray
        quaternion in wxyz order. It is normalized before conversion.

    Returns
    -------
    rot : numpy.ndarray
        3x3 rotation matrix.
    """
    w, x, y, z = np.asarray(q, dtype=np.float64)
    return Rotation.from_quat([x, y, z, w]).as_matrix()


def angle_between_vectors(v1, v2, normalize=True):
    """Returns the smallest angle in radians between two vectors.

    Parameters
    ----------
    v1 : numpy.ndarray, list[float] or tuple(float)
        input vector.
    v2 : numpy.ndarray, list[float] or tuple(float)
        input vector.
    normalize : bool
        If normalize is True, normalize v1 and v2.

    Returns
    -------
    theta : float
        smallest angle between v1 and v2.
    """
    if normalize:
        v1 = normalize_vector(v1)
        v2 = normalize_vector(v2)
    # atan2 keeps precision for nearly parallel vectors
    return float(np.arctan2(np.linalg.norm(np.cross(v1, v2)),
                            np.dot(v1, v2)))


def rotation_error_vector(rot, target_rot):
    """Return rotation vector taking target_rot to rot.

    Parameters
    ----------
    rot : numpy.ndarray
        current 3x3 rotation matrix.
    target_rot : numpy.ndarray
        target 3x3 rotation matrix.

    Returns
    -------
    err : numpy.ndarray
        axis-angle vector of ``target_rot^T rot`` expressed in the
        target frame. Its norm is the rotation distance.
    """
    rel = np.dot(np.asarray(target_rot).T, np.asarray(rot))
    return Rotation.from_matrix(rel).as_rotvec()


def rotation_distance(mat1, mat2):
    """Return the angle of the relative rotation between two matrices.

    Examples
    --------
    >>> import numpy
    >>> from skmotion.coordinates.math import rotation_distance
    >>> rotation_distance(numpy.eye(3), numpy.eye(3))
    0.0
    """
    return float(np.linalg.norm(rotation_error_vector(mat1, mat2)))


def make_transform(pos=None, rot=None):
    """Return 4x4 homogeneous matrix from translation and rotation."""
    T = np.eye(4)
    if rot is not None:
        T[:3, :3] = rot
    if pos is not None:
        T[:3, 3] = pos
    return T


def inverse_transform(T):
    """Return inverse of 4x4 homogeneous matrix."""
    rot_inv = T[:3, :3].T
    inv = np.eye(4)
    inv[:3, :3] = rot_inv
    inv[:3, 3] = -rot_inv.dot(T[:3, 3])
    return inv


def interpolate_transform(T0, T1, fraction):
    """Interpolate two homogeneous matrices.

    Translation is interpolated linearly and rotation by slerp.

    Parameters
    ----------
    T0 : numpy.ndarray
        4x4 start transform.
    T1 : numpy.ndarray
        4x4 end transform.
    fraction : float
        0.0 returns T0 and 1.0 returns T1.

    Returns
    -------
    T : numpy.ndarray
        interpolated 4x4 transform.
    """
    pos = (1.0 - fraction) * T0[:3, 3] + fraction * T1[:3, 3]
    rel = Rotation.from_matrix(np.dot(T0[:3, :3].T, T1[:3, :3]))
    rot = np.dot(T0[:3, :3],
                 Rotation.from_rotvec(rel.as_rotvec() * fraction).as_matrix())
    return make_transform(pos, rot)
