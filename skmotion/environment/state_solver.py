from collections import deque

import numpy as np


class StateSolver(object):
    """Forward kinematics of a whole link tree.

    A state solver is a snapshot of the environment tree. Changing its
    state does not change the environment it was created from.

    Parameters
    ----------
    root_link : str
        name of the root link.
    joints : list[skmotion.environment.Joint]
        joints of the tree.
    joint_positions : dict[str, float]
        initial positions of active joints. Missing joints are zero.
    """

    def __init__(self, root_link, joints, joint_positions=None):
        self.root_link = root_link
        self._joints = list(joints)
        children = {}
        for joint in self._joints:
            children.setdefault(joint.parent_link, []).append(joint)
        order = []
        queue = deque([root_link])
        while queue:
            link = queue.popleft()
            for joint in children.get(link, []):
                order.append(joint)
                queue.append(joint.child_link)
        self._order = order
        self._active_joint_names = [j.name for j in order if j.is_active]
        self._positions = {name: 0.0 for name in self._active_joint_names}
        if joint_positions:
            self.set_state(joint_positions)

    def get_joint_names(self):
        """Return names of active joints in tree order."""
        return list(self._active_joint_names)

    def get_link_names(self):
        return [self.root_link] + [j.child_link for j in self._order]

    def get_joints(self):
        """Return joints in tree order."""
        return list(self._order)

    def get_joint(self, name):
        for joint in self._order:
            if joint.name == name:
                return joint
        raise KeyError('Joint {} does not exist'.format(name))

    def _merge(self, joint_names, joint_values):
        positions = dict(self._positions)
        if joint_names is None:
            return positions
        if isinstance(joint_names, dict):
            items = joint_names.items()
        else:
            joint_values = np.asarray(joint_values, dtype=np.float64)
            if len(joint_names) != len(joint_values):
                raise ValueError(
                    'Got {} joint names and {} joint values'.format(
                        len(joint_names), len(joint_values)))
            items = zip(joint_names, joint_values)
        for name, value in items:
            if name not in positions:
                raise KeyError('Joint {} is not an active joint'.format(name))
            positions[name] = float(value)
        return positions

    def set_state(self, joint_names, joint_values=None):
        """Set joint positions.

        Parameters
        ----------
        joint_names : list[str] or dict[str, float]
            joint names, or a mapping of joint names to positions.
        joint_values : list[float]
            positions when joint_names is a list.
        """
        self._positions = self._merge(joint_names, joint_values)

    def get_current_state(self):
        return dict(self._positions)

    def get_state(self, joint_names=None, joint_values=None):
        """Return world transforms of every link for a joint state.

        The stored state is not modified.

        Returns
        -------
        link_transforms : dict[str, numpy.ndarray]
            4x4 transform of every link.
        """
        positions = self._merge(joint_names, joint_values)
        transforms = {self.root_link: np.eye(4)}
        for joint in self._order:
            parent_T = transforms[joint.parent_link]
            local = joint.local_transform(positions.get(joint.name, 0.0))
            transforms[joint.child_link] = parent_T.dot(local)
        return transforms

    def get_link_transforms(self):
        return self.get_state()

    def clone(self):
        return StateSolver(self.root_link, self._joints, self._positions)
