"""Shapes attached to environment links for contact checking.

Every shape is stored in the frame of its link. A contact manager moves
it into the world frame with :meth:`CollisionGeometry.transform_matrix`
before signed distances are computed.

Example
-------
>>> import numpy as np
>>> from skmotion.collision import Capsule, Sphere, collision_distance
>>> arm = Capsule.from_endpoints([0, 0, 0], [0, 0, 0.4], 0.05)
>>> ball = Sphere.from_center_and_radius([0.3, 0, 0.2], 0.1)
>>> round(collision_distance(arm, ball), 3)
0.15
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass
class CollisionGeometry:
    """Shape in the frame of its link."""

    def transform(self, position, rotation):
        """Return a copy moved by a rigid transform.

        Parameters
        ----------
        position : numpy.ndarray
            translation of shape (3,).
        rotation : numpy.ndarray
            rotation matrix of shape (3, 3).

        Returns
        -------
        geometry : CollisionGeometry
            moved shape of the same type.
        """
        raise NotImplementedError

    def transform_matrix(self, T):
        return self.transform(T[:3, 3], T[:3, :3])


@dataclass
class Sphere(CollisionGeometry):
    center: np.ndarray
    radius: float

    def transform(self, position, rotation):
        return Sphere(center=position + rotation.dot(self.center),
                      radius=self.radius)

    @classmethod
    def from_center_and_radius(cls, center, radius):
        return cls(center=np.asarray(center, dtype=np.float64),
                   radius=float(radius))


@dataclass
class Capsule(CollisionGeometry):
    """Segment from p1 to p2 swept by a sphere of radius.

    Link shapes of the bundled arm models are capsules along the link z
    axis.
    """
    p1: np.ndarray
    p2: np.ndarray
    radius: float

    def transform(self, position, rotation):
        return Capsule(p1=position + rotation.dot(self.p1),
                       p2=position + rotation.dot(self.p2),
                       radius=self.radius)

    @property
    def height(self):
        """Length of the core segment."""
        return float(np.linalg.norm(self.p2 - self.p1))

    @classmethod
    def from_endpoints(cls, p1, p2, radius):
        return cls(p1=np.asarray(p1, dtype=np.float64),
                   p2=np.asarray(p2, dtype=np.float64),
                   radius=float(radius))


@dataclass
class Box(CollisionGeometry):
    """Oriented box.

    Parameters
    ----------
    center : numpy.ndarray
        box center.
    half_extents : numpy.ndarray
        half of the side lengths along the box axes.
    rotation : numpy.ndarray
        orientation of the box axes. None is the identity.
    """
    center: np.ndarray
    half_extents: np.ndarray
    rotation: Optional[np.ndarray] = None

    def transform(self, position, rotation):
        if self.rotation is None:
            axes = rotation
        else:
            axes = rotation.dot(self.rotation)
        return Box(center=position + rotation.dot(self.center),
                   half_extents=self.half_extents, rotation=axes)

    @classmethod
    def from_center_and_extents(cls, center, extents, rotation=None):
        """Make a box from its full side lengths."""
        if rotation is not None:
            rotation = np.asarray(rotation, dtype=np.float64)
        return cls(center=np.asarray(center, dtype=np.float64),
                   half_extents=0.5 * np.asarray(extents, dtype=np.float64),
                   rotation=rotation)


@dataclass
class HalfSpace(CollisionGeometry):
    """Everything behind a plane.

    A point x is inside when ``(x - point) . normal < 0``.
    """
    point: np.ndarray
    normal: np.ndarray

    def transform(self, position, rotation):
        return HalfSpace(point=position + rotation.dot(self.point),
                         normal=rotation.dot(self.normal))

    @classmethod
    def ground_plane(cls, height=0.0):
        return cls(point=np.array([0.0, 0.0, height]),
                   normal=np.array([0.0, 0.0, 1.0]))


@dataclass
class PointCloud(CollisionGeometry):
    """Sensor points, each inflated by radius.

    Parameters
    ----------
    points : numpy.ndarray
        array shape of (n_points, 3).
    radius : float
        inflation of every point.
    """
    points: np.ndarray
    radius: float = 0.0

    def __post_init__(self):
        self.points = np.asarray(self.points, dtype=np.float64).reshape(-1, 3)
        if len(self.points) == 0:
            raise ValueError('PointCloud requires at least one point')

    def transform(self, position, rotation):
        return PointCloud(
            points=position + self.points.dot(np.asarray(rotation).T),
            radius=self.radius)
