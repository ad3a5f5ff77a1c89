from contextlib import contextmanager
from logging import getLogger
import threading

import numpy as np

from skmotion.collision.contact_manager import AllowedCollisionMatrix
from skmotion.collision.contact_manager import ContinuousContactManager
from skmotion.collision.contact_manager import DiscreteContactManager
from skmotion.collision.geometry import Box
from skmotion.collision.geometry import PointCloud
from skmotion.collision.geometry import Sphere
from skmotion.coordinates.math import make_transform
from skmotion.environment.kinematics import KinematicGroup
from skmotion.environment.scene_graph import Joint
from skmotion.environment.scene_graph import Link
from skmotion.environment.state_solver import StateSolver


logger = getLogger(__name__)


class EnvironmentLockedError(RuntimeError):
    """Raised when the environment is modified during a solve."""


class Environment(object):
    """Owning store of links, joints, groups and the current joint state.

    Planners read the environment through snapshots (state solvers,
    kinematic groups and contact managers). While any planner holds
    :meth:`solve_guard`, every mutation raises
    :class:`EnvironmentLockedError`.

    Parameters
    ----------
    root_link : str
        name of the root link.
    name : str
        environment name.
    """

    def __init__(self, root_link='base_link', name='environment'):
        self.name = name
        self.root_link = root_link
        self._lock = threading.RLock()
        self._guard_count = 0
        self._links = {root_link: Link(root_link)}
        self._joints = {}
        self._positions = {}
        self._groups = {}
        self._allowed = AllowedCollisionMatrix()
        self._revision = 0

    @property
    def revision(self):
        """Counter increased by every mutation."""
        return self._revision

    @property
    def is_locked(self):
        return self._guard_count > 0

    @contextmanager
    def solve_guard(self):
        """Context in which the environment refuses mutation."""
        with self._lock:
            self._guard_count += 1
        try:
            yield self
        finally:
            with self._lock:
                self._guard_count -= 1

    @contextmanager
    def _mutation(self):
        with self._lock:
            if self._guard_count > 0:
                raise EnvironmentLockedError(
                    'Environment {} is in use by a running planner'.format(
                        self.name))
            yield
            self._revision += 1

    def add_link(self, link, joint=None):
        """Add a link.

        Parameters
        ----------
        link : skmotion.environment.Link
            link to add.
        joint : skmotion.environment.Joint
            joint attaching the link to its parent. Defaults to a fixed
            joint at the root link origin.
        """
        with self._mutation():
            if link.name in self._links:
                raise ValueError('Link {} already exists'.format(link.name))
            if joint is None:
                joint = Joint('{}_joint'.format(link.name), self.root_link,
                              link.name)
            if joint.child_link != link.name:
                raise ValueError(
                    'Joint {} child {} does not match link {}'.format(
                        joint.name, joint.child_link, link.name))
            if joint.parent_link not in self._links:
                raise ValueError(
                    'Parent link {} does not exist'.format(joint.parent_link))
            if joint.name in self._joints:
                raise ValueError('Joint {} already exists'.format(joint.name))
            self._links[link.name] = link
            self._joints[joint.name] = joint
            if joint.is_active:
                self._positions[joint.name] = float(
                    np.clip(0.0, joint.min_angle, joint.max_angle))
        logger.debug('Added link %s to %s', link.name, self.name)

    def add_collision_geometry(self, link_name, geometry):
        """Attach a collision geometry to an existing link."""
        with self._mutation():
            if link_name not in self._links:
                raise KeyError('Link {} does not exist'.format(link_name))
            self._links[link_name].collision_geometries.append(geometry)

    def _add_obstacle(self, name, geometry, position, rotation, parent_link):
        origin = make_transform(position, rotation)
        self.add_link(Link(name, [geometry]),
                      Joint('{}_joint'.format(name),
                            parent_link or self.root_link, name,
                            origin=origin))

    def add_sphere(self, name, radius, position, parent_link=None):
        """Add a sphere obstacle attached to parent_link by a fixed joint."""
        self._add_obstacle(
            name, Sphere.from_center_and_radius(np.zeros(3), radius),
            position, None, parent_link)

    def add_box(self, name, extents, position, rotation=None,
                parent_link=None):
        self._add_obstacle(
            name, Box.from_center_and_extents(np.zeros(3), extents),
            position, rotation, parent_link)

    def add_point_cloud(self, name, points, radius=0.0, parent_link=None):
        self._add_obstacle(
            name, PointCloud(points=points, radius=radius),
            np.zeros(3), None, parent_link)

    def remove_link(self, name):
        """Remove a link and all of its descendants."""
        with self._mutation():
            if name == self.root_link:
                raise ValueError('Cannot remove root link {}'.format(name))
            if name not in self._links:
                raise KeyError('Link {} does not exist'.format(name))
            removed = {name}
            changed = True
            while changed:
                changed = False
                for joint in self._joints.values():
                    if (joint.parent_link in removed
                            and joint.child_link not in removed):
                        removed.add(joint.child_link)
                        changed = True
            for joint_name in [n for n, j in self._joints.items()
                               if j.child_link in removed]:
                del self._joints[joint_name]
                self._positions.pop(joint_name, None)
            for link_name in removed:
                del self._links[link_name]
            for group_name in [n for n, (base, tip) in self._groups.items()
                               if tip in removed or base in removed]:
                del self._groups[group_name]
        logger.debug('Removed links %s from %s', sorted(removed), self.name)

    def has_link(self, name):
        return name in self._links

    def get_link_names(self):
        return list(self._links.keys())

    def get_joint_names(self):
        """Return names of the active joints."""
        return self.get_state_solver().get_joint_names()

    def set_state(self, joint_names, joint_values=None):
        """Set the current joint state.

        Parameters
        ----------
        joint_names : list[str] or dict[str, float]
            joint names, or a mapping of joint names to positions.
        joint_values : list[float]
            positions when joint_names is a list.
        """
        with self._mutation():
            solver = self._make_state_solver()
            solver.set_state(joint_names, joint_values)
            self._positions = solver.get_current_state()

    def get_current_state(self):
        with self._lock:
            return dict(self._positions)

    def _make_state_solver(self):
        return StateSolver(self.root_link, list(self._joints.values()),
                           self._positions)

    def get_state_solver(self):
        """Return a state solver snapshot of the current tree and state."""
        with self._lock:
            return self._make_state_solver()

    def add_kinematic_group(self, name, base_link, tip_link):
        with self._mutation():
            for link in (base_link, tip_link):
                if link not in self._links:
                    raise ValueError('Link {} does not exist'.format(link))
            # raises if the chain is invalid
            KinematicGroup(name, self._make_state_solver(), base_link,
                           tip_link)
            self._groups[name] = (base_link, tip_link)

    def has_kinematic_group(self, name):
        return name in self._groups

    def get_group_names(self):
        return list(self._groups.keys())

    def get_kinematic_group(self, name):
        """Return a kinematic group on a snapshot of the environment.

        Raises
        ------
        KeyError
            If no group is registered under name.
        """
        with self._lock:
            if name not in self._groups:
                raise KeyError('Kinematic group {} does not exist'.format(
                    name))
            base_link, tip_link = self._groups[name]
            return KinematicGroup(name, self._make_state_solver(),
                                  base_link, tip_link)

    def get_active_link_names(self, joint_names=None):
        """Return links moved by the given joints.

        Parameters
        ----------
        joint_names : list[str]
            joints to consider. Defaults to all active joints.

        Returns
        -------
        link_names : list[str]
            child links of the joints and all of their descendants.
        """
        with self._lock:
            if joint_names is None:
                joint_names = [n for n, j in self._joints.items()
                               if j.is_active]
            moving = set()
            for name in joint_names:
                if name not in self._joints:
                    raise KeyError('Joint {} does not exist'.format(name))
                moving.add(self._joints[name].child_link)
            ordered = []
            for joint in self._make_state_solver().get_joints():
                if joint.child_link in moving or joint.parent_link in moving:
                    moving.add(joint.child_link)
                    ordered.append(joint.child_link)
            return ordered

    def add_allowed_collision(self, link_name1, link_name2, reason=''):
        with self._mutation():
            self._allowed.add_allowed_collision(link_name1, link_name2, reason)

    def remove_allowed_collision(self, link_name1, link_name2):
        with self._mutation():
            self._allowed.remove_allowed_collision(link_name1, link_name2)

    def get_allowed_collisions(self):
        with self._lock:
            return self._allowed.copy()

    def _populate(self, manager):
        transforms = self._make_state_solver().get_state()
        for link in self._links.values():
            if link.collision_geometries:
                manager.add_collision_object(
                    link.name, link.collision_geometries,
                    transforms[link.name])
        return manager

    def get_discrete_contact_manager(self):
        """Return a new discrete contact manager of the current scene."""
        with self._lock:
            return self._populate(DiscreteContactManager(
                allowed_collisions=self._allowed.copy()))

    def get_continuous_contact_manager(self, motion_resolution=0.01):
        with self._lock:
            return self._populate(ContinuousContactManager(
                allowed_collisions=self._allowed.copy(),
                motion_resolution=motion_resolution))

    def __repr__(self):
        return '<Environment {} links={} groups={}>'.format(
            self.name, len(self._links), sorted(self._groups))
