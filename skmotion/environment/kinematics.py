from logging import getLogger

from cached_property import cached_property
import numpy as np
from scipy.optimize import least_squares

from skmotion.coordinates.math import inverse_transform
from skmotion.coordinates.math import rotation_error_vector


logger = getLogger(__name__)


def _as_matrix(pose):
    if hasattr(pose, 'T') and callable(pose.T):
        return pose.T()
    pose = np.asarray(pose, dtype=np.float64)
    if pose.shape != (4, 4):
        raise ValueError(
            'Pose must be Coordinates or 4x4 matrix, got shape {}'.format(
                pose.shape))
    return pose


def pose_error(T, target_T, rotation_weight=1.0):
    """Return stacked translation and rotation error between two poses."""
    return np.concatenate([
        T[:3, 3] - target_T[:3, 3],
        rotation_weight * rotation_error_vector(T[:3, :3], target_T[:3, :3])])


class KinematicGroup(object):
    """Serial chain of active joints between a base link and a tip link.

    Poses are expressed in the base link frame.

    Parameters
    ----------
    name : str
        group name, e.g. 'manipulator'.
    state_solver : skmotion.environment.StateSolver
        snapshot of the environment. Joints outside the group keep the
        positions of this snapshot.
    base_link : str
        first link of the chain.
    tip_link : str
        last link of the chain.
    """

    def __init__(self, name, state_solver, base_link, tip_link):
        self.name = name
        self.base_link = base_link
        self.tip_link = tip_link
        self._state_solver = state_solver
        parent_joint = {j.child_link: j for j in state_solver.get_joints()}
        chain = []
        link = tip_link
        while link != base_link:
            joint = parent_joint.get(link)
            if joint is None:
                raise ValueError(
                    'Link {} is not a descendant of {}'.format(
                        tip_link, base_link))
            chain.append(joint)
            link = joint.parent_link
        chain.reverse()
        self._chain = chain
        self._joints = [j for j in chain if j.is_active]
        self._joint_names = [j.name for j in self._joints]
        if len(self._joint_names) == 0:
            raise ValueError(
                'Kinematic group {} has no active joints'.format(name))

    def get_joint_names(self):
        return list(self._joint_names)

    def get_link_names(self):
        """Return links of the chain from base to tip."""
        return [self.base_link] + [j.child_link for j in self._chain]

    @property
    def n_joints(self):
        return len(self._joint_names)

    @cached_property
    def limits(self):
        """Position limits.

        Returns
        -------
        limits : numpy.ndarray
            array shape of (n_joints, 2) of lower and upper limits.
        """
        return np.array([[j.min_angle, j.max_angle] for j in self._joints])

    @cached_property
    def velocity_limits(self):
        return np.array([j.max_joint_velocity for j in self._joints])

    def get_limits(self):
        return self.limits.copy()

    def get_velocity_limits(self):
        return self.velocity_limits.copy()

    def check_joints(self, joint_values, tol=1e-9):
        """Return True if joint_values lie within the position limits."""
        q = np.asarray(joint_values, dtype=np.float64)
        return bool(np.all(q >= self.limits[:, 0] - tol)
                    and np.all(q <= self.limits[:, 1] + tol))

    def clip(self, joint_values):
        return np.clip(joint_values, self.limits[:, 0], self.limits[:, 1])

    def calc_fwd_kin(self, joint_values, link_name=None):
        """Compute the pose of a link for joint values.

        Parameters
        ----------
        joint_values : list[float] or numpy.ndarray
            positions of the group joints.
        link_name : str
            link to compute. Defaults to the tip link.

        Returns
        -------
        T : numpy.ndarray
            4x4 pose of the link in the base link frame.
        """
        link_name = link_name or self.tip_link
        joint_values = np.asarray(joint_values, dtype=np.float64)
        if joint_values.shape != (self.n_joints,):
            raise ValueError(
                'Expected {} joint values, got shape {}'.format(
                    self.n_joints, joint_values.shape))
        transforms = self._state_solver.get_state(
            self._joint_names, joint_values)
        if link_name not in transforms:
            raise KeyError('Link {} does not exist'.format(link_name))
        return inverse_transform(transforms[self.base_link]).dot(
            transforms[link_name])

    def calc_jacobian(self, joint_values, link_name=None, eps=1e-6):
        """Numerical geometric jacobian of a link pose.

        Returns
        -------
        jacobian : numpy.ndarray
            array shape of (6, n_joints). Rows are translation then
            rotation error.
        """
        q = np.asarray(joint_values, dtype=np.float64)
        T0 = self.calc_fwd_kin(q, link_name)
        jac = np.zeros((6, self.n_joints))
        for i in range(self.n_joints):
            dq = q.copy()
            dq[i] += eps
            jac[:, i] = pose_error(self.calc_fwd_kin(dq, link_name), T0) / eps
        return jac

    def calc_inv_kin(self, target, seed, link_name=None, n_attempts=1,
                     tolerance=1e-4, rotation_weight=1.0, random_state=None):
        """Solve inverse kinematics.

        The first attempt starts from ``seed``. Further attempts start
        from random positions within limits.

        Parameters
        ----------
        target : Coordinates or numpy.ndarray
            target pose in the base link frame.
        seed : list[float] or numpy.ndarray
            initial joint values.
        link_name : str
            link to place at target. Defaults to the tip link.
        n_attempts : int
            number of attempts including the seeded one.
        tolerance : float
            maximum norm of the pose error of an accepted solution.
        rotation_weight : float
            weight of rotation error relative to translation error.
        random_state : numpy.random.RandomState or int
            source of random restarts.

        Returns
        -------
        solutions : list[numpy.ndarray]
            distinct solutions within limits, in the order found.
        """
        target_T = _as_matrix(target)
        if not isinstance(random_state, np.random.RandomState):
            random_state = np.random.RandomState(random_state)
        lower = self.limits[:, 0]
        upper = self.limits[:, 1]

        def residual(q):
            return pose_error(self.calc_fwd_kin(q, link_name), target_T,
                              rotation_weight)

        solutions = []
        for attempt in range(n_attempts):
            if attempt == 0:
                x0 = self.clip(np.asarray(seed, dtype=np.float64))
            else:
                x0 = random_state.uniform(lower, upper)
            # least_squares requires a strictly feasible start
            x0 = np.clip(x0, lower + 1e-9, upper - 1e-9)
            result = least_squares(residual, x0, bounds=(lower, upper),
                                   xtol=1e-10, ftol=1e-10)
            if np.linalg.norm(result.fun) > tolerance:
                continue
            q = result.x
            if any(np.max(np.abs(q - s)) < 1e-3 for s in solutions):
                continue
            solutions.append(q)
        logger.debug('IK for group %s found %d solutions in %d attempts',
                     self.name, len(solutions), n_attempts)
        return solutions
