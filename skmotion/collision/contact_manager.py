"""Contact managers checking collision between named collision objects.

A collision object is a named set of link-local geometries together with
its current world transform. Environment links become collision objects
with the link name as the object name.

Example
-------
>>> import numpy as np
>>> from skmotion.collision import DiscreteContactManager, Sphere
>>> manager = DiscreteContactManager()
>>> manager.add_collision_object('a', [Sphere(np.zeros(3), 0.1)])
>>> manager.add_collision_object('b', [Sphere(np.zeros(3), 0.1)])
>>> manager.set_active_collision_objects(['a'])
>>> len(manager.contact_test())
1
"""

import copy
from dataclasses import dataclass
from itertools import combinations
from logging import getLogger

import numpy as np

from skmotion.collision.distance import collision_distance
from skmotion.coordinates.math import interpolate_transform


logger = getLogger(__name__)


@dataclass
class ContactResult:
    """Contact between two collision objects.

    Parameters
    ----------
    link_names : tuple(str, str)
        Names of the collision objects in contact.
    distance : float
        Signed distance. Negative values are penetrations.
    cc_time : float
        Fraction of the motion at which the contact was found.
        -1 for discrete checks.
    """
    link_names: tuple
    distance: float
    cc_time: float = -1.0


class AllowedCollisionMatrix(object):
    """Set of collision object pairs that are never checked."""

    def __init__(self):
        self._entries = {}

    @staticmethod
    def _key(name1, name2):
        return tuple(sorted((name1, name2)))

    def add_allowed_collision(self, name1, name2, reason=''):
        self._entries[self._key(name1, name2)] = reason

    def remove_allowed_collision(self, name1, name2):
        self._entries.pop(self._key(name1, name2), None)

    def is_collision_allowed(self, name1, name2):
        return self._key(name1, name2) in self._entries

    def get_all_allowed_collisions(self):
        return dict(self._entries)

    def __len__(self):
        return len(self._entries)

    def copy(self):
        acm = AllowedCollisionMatrix()
        acm._entries = dict(self._entries)
        return acm


class _CollisionObject(object):

    def __init__(self, name, geometries, transform, enabled=True):
        self.name = name
        self.geometries = list(geometries)
        self.transform = np.array(transform, dtype=np.float64)
        self.enabled = enabled
        self._world = None

    def set_transform(self, T):
        self.transform = np.array(T, dtype=np.float64)
        self._world = None

    def world_geometries(self):
        if self._world is None:
            self._world = [g.transform_matrix(self.transform)
                           for g in self.geometries]
        return self._world

    def copy(self):
        obj = _CollisionObject(self.name, self.geometries, self.transform,
                               self.enabled)
        obj._world = self._world
        return obj


class DiscreteContactManager(object):
    """Contact manager evaluating one configuration at a time.

    Parameters
    ----------
    contact_distance : float
        Pairs closer than this distance are reported as contacts.
    allowed_collisions : AllowedCollisionMatrix, optional
        Pairs that are never checked.
    """

    def __init__(self, contact_distance=0.0, allowed_collisions=None):
        self._objects = {}
        self._active = None
        self._contact_distance = float(contact_distance)
        if allowed_collisions is None:
            allowed_collisions = AllowedCollisionMatrix()
        self._allowed = allowed_collisions
        self._pairs = None

    def add_collision_object(self, name, geometries, transform=None,
                             enabled=True):
        """Add a collision object.

        Parameters
        ----------
        name : str
            Unique name, usually the link name.
        geometries : list[CollisionGeometry]
            Geometries in the object's local frame.
        transform : numpy.ndarray, optional
            4x4 world transform of the object.
        enabled : bool
            Disabled objects are skipped by every check.
        """
        if transform is None:
            transform = np.eye(4)
        self._objects[name] = _CollisionObject(
            name, geometries, transform, enabled)
        self._pairs = None

    def remove_collision_object(self, name):
        if name not in self._objects:
            return False
        del self._objects[name]
        if self._active is not None and name in self._active:
            self._active = [n for n in self._active if n != name]
        self._pairs = None
        return True

    def has_collision_object(self, name):
        return name in self._objects

    def enable_collision_object(self, name):
        self._objects[name].enabled = True
        self._pairs = None

    def disable_collision_object(self, name):
        self._objects[name].enabled = False
        self._pairs = None

    def get_collision_object_names(self):
        return list(self._objects.keys())

    def set_active_collision_objects(self, names):
        """Set the objects that move during planning.

        Only pairs with at least one active object are checked.
        """
        unknown = [n for n in names if n not in self._objects]
        if unknown:
            logger.warning(
                'Ignoring unknown active collision objects: %s', unknown)
        self._active = [n for n in names if n in self._objects]
        self._pairs = None

    def get_active_collision_objects(self):
        if self._active is None:
            return list(self._objects.keys())
        return list(self._active)

    def set_contact_distance_threshold(self, distance):
        self._contact_distance = float(distance)

    def get_contact_distance_threshold(self):
        return self._contact_distance

    def set_allowed_collisions(self, allowed_collisions):
        self._allowed = allowed_collisions
        self._pairs = None

    def get_allowed_collisions(self):
        return self._allowed

    def set_collision_objects_transform(self, name_or_transforms, T=None):
        """Set world transforms of collision objects.

        Parameters
        ----------
        name_or_transforms : str or dict[str, numpy.ndarray]
            Object name with ``T``, or a mapping of names to 4x4
            transforms. Names without a collision object are ignored.
        T : numpy.ndarray, optional
            4x4 transform when a single name is given.
        """
        if isinstance(name_or_transforms, str):
            name_or_transforms = {name_or_transforms: T}
        for name, transform in name_or_transforms.items():
            obj = self._objects.get(name)
            if obj is not None:
                obj.set_transform(transform)

    def get_collision_objects_transform(self):
        return {name: obj.transform.copy()
                for name, obj in self._objects.items()}

    def candidate_pairs(self):
        """Return object pairs checked by this manager.

        Returns
        -------
        pairs : list[tuple(str, str)]
            Pairs with at least one active object that are enabled and
            not allowed to collide.
        """
        if self._pairs is not None:
            return self._pairs
        active = set(self.get_active_collision_objects())
        names = [n for n, obj in self._objects.items() if obj.enabled]
        pairs = []
        for name1, name2 in combinations(names, 2):
            if name1 not in active and name2 not in active:
                continue
            if self._allowed.is_collision_allowed(name1, name2):
                continue
            pairs.append((name1, name2))
        self._pairs = pairs
        return pairs

    def _pair_distance(self, name1, name2):
        geoms1 = self._objects[name1].world_geometries()
        geoms2 = self._objects[name2].world_geometries()
        return min(collision_distance(g1, g2)
                   for g1 in geoms1 for g2 in geoms2)

    def distance_vector(self):
        """Return signed distance of every candidate pair.

        Returns
        -------
        pairs : list[tuple(str, str)]
            Checked pairs, see :meth:`candidate_pairs`.
        distances : numpy.ndarray
            Signed distance per pair.
        """
        pairs = self.candidate_pairs()
        distances = np.array([self._pair_distance(n1, n2)
                              for n1, n2 in pairs], dtype=np.float64)
        return pairs, distances

    def contact_test(self):
        """Return contacts closer than the contact distance threshold.

        Returns
        -------
        contacts : list[ContactResult]
            Contacts sorted by distance.
        """
        pairs, distances = self.distance_vector()
        contacts = [ContactResult(link_names=pair, distance=float(d))
                    for pair, d in zip(pairs, distances)
                    if d < self._contact_distance]
        contacts.sort(key=lambda c: c.distance)
        return contacts

    def in_collision(self):
        return len(self.contact_test()) > 0

    def clone(self):
        """Return an independent manager sharing the geometries."""
        cloned = self.__class__.__new__(self.__class__)
        cloned.__dict__.update(copy.copy(self.__dict__))
        cloned._objects = {name: obj.copy()
                           for name, obj in self._objects.items()}
        cloned._active = None if self._active is None else list(self._active)
        cloned._allowed = self._allowed.copy()
        cloned._pairs = None
        return cloned


class ContinuousContactManager(DiscreteContactManager):
    """Contact manager checking motions between two configurations.

    Motions are checked by interpolating the object transforms so that
    no object moves more than ``motion_resolution`` between samples.

    Parameters
    ----------
    contact_distance : float
        Pairs closer than this distance are reported as contacts.
    allowed_collisions : AllowedCollisionMatrix, optional
        Pairs that are never checked.
    motion_resolution : float
        Maximum translation in meters between interpolated samples.
    """

    def __init__(self, contact_distance=0.0, allowed_collisions=None,
                 motion_resolution=0.01):
        super(ContinuousContactManager, self).__init__(
            contact_distance=contact_distance,
            allowed_collisions=allowed_collisions)
        if motion_resolution <= 0:
            raise ValueError(
                'motion_resolution must be positive, got {}'.format(
                    motion_resolution))
        self.motion_resolution = motion_resolution

    def _num_substeps(self, transforms0, transforms1):
        max_move = 0.0
        for name, T0 in transforms0.items():
            T1 = transforms1.get(name)
            if T1 is None or name not in self._objects:
                continue
            max_move = max(max_move, np.linalg.norm(T1[:3, 3] - T0[:3, 3]))
        return max(1, int(np.ceil(max_move / self.motion_resolution)))

    def contact_test_motion(self, transforms0, transforms1):
        """Check the motion between two sets of object transforms.

        Parameters
        ----------
        transforms0 : dict[str, numpy.ndarray]
            Object transforms at the start of the motion.
        transforms1 : dict[str, numpy.ndarray]
            Object transforms at the end of the motion.

        Returns
        -------
        contacts : list[ContactResult]
            Deepest contact of every pair in contact during the motion,
            with ``cc_time`` set to the fraction where it occurs.
        """
        n = self._num_substeps(transforms0, transforms1)
        deepest = {}
        for i in range(n + 1):
            fraction = i / float(n)
            self.set_collision_objects_transform(
                {name: interpolate_transform(T0, transforms1[name], fraction)
                 for name, T0 in transforms0.items() if name in transforms1})
            for contact in self.contact_test():
                contact.cc_time = fraction
                prev = deepest.get(contact.link_names)
                if prev is None or contact.distance < prev.distance:
                    deepest[contact.link_names] = contact
        return sorted(deepest.values(), key=lambda c: c.distance)
