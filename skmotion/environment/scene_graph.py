import numpy as np

from skmotion.coordinates.math import convert_to_axis_vector
from skmotion.coordinates.math import make_transform
from skmotion.coordinates.math import normalize_vector
from skmotion.coordinates.math import rotation_matrix


JOINT_TYPES = ('revolute', 'prismatic', 'fixed')


class Link(object):
    """Named rigid body with optional collision geometries.

    Parameters
    ----------
    name : str
        link name.
    collision_geometries : list[skmotion.collision.CollisionGeometry]
        geometries in the link frame.
    """

    def __init__(self, name, collision_geometries=None):
        if not name:
            raise ValueError('Link name must not be empty')
        self.name = name
        self.collision_geometries = list(collision_geometries or [])

    def __repr__(self):
        return '<Link {} ({} geometries)>'.format(
            self.name, len(self.collision_geometries))


class Joint(object):
    """Joint connecting a parent link to a child link.

    Parameters
    ----------
    name : str
        joint name.
    parent_link : str
        name of the parent link.
    child_link : str
        name of the child link.
    joint_type : str
        'revolute', 'prismatic' or 'fixed'.
    origin : numpy.ndarray
        4x4 transform of the joint frame in the parent link frame.
    axis : str or list[float]
        motion axis in the joint frame.
    min_angle : float
        lower position limit.
    max_angle : float
        upper position limit.
    max_joint_velocity : float
        velocity limit.
    """

    def __init__(self, name, parent_link, child_link,
                 joint_type='fixed', origin=None, axis='z',
                 min_angle=-np.pi, max_angle=np.pi,
                 max_joint_velocity=np.deg2rad(90)):
        if joint_type not in JOINT_TYPES:
            raise ValueError('Invalid joint type {}. Valid types are {}'
                             .format(joint_type, JOINT_TYPES))
        if min_angle > max_angle:
            raise ValueError(
                'Joint {} min_angle {} is larger than max_angle {}'.format(
                    name, min_angle, max_angle))
        self.name = name
        self.parent_link = parent_link
        self.child_link = child_link
        self.joint_type = joint_type
        if origin is None:
            origin = np.eye(4)
        self.origin = np.array(origin, dtype=np.float64)
        self.axis = normalize_vector(convert_to_axis_vector(axis))
        self.min_angle = float(min_angle)
        self.max_angle = float(max_angle)
        self.max_joint_velocity = float(max_joint_velocity)

    @property
    def is_active(self):
        return self.joint_type != 'fixed'

    def local_transform(self, position=0.0):
        """Return the child link transform in the parent link frame."""
        if self.joint_type == 'revolute':
            motion = make_transform(rot=rotation_matrix(position, self.axis))
        elif self.joint_type == 'prismatic':
            motion = make_transform(pos=self.axis * position)
        else:
            return self.origin
        return self.origin.dot(motion)

    def __repr__(self):
        return '<Joint {} {} {} -> {}>'.format(
            self.name, self.joint_type, self.parent_link, self.child_link)
