"""Kinematic constraints on the tool pose.

A pose constraint is a serializable profile describing a pose
condition. :class:`ConstraintEvaluator` binds it to a kinematic group
and provides the joint space evaluation used by planners: value,
jacobian and projection onto the constraint manifold.
"""

from abc import abstractmethod
from logging import getLogger

import numpy as np

from skmotion.coordinates.math import angle_between_vectors
from skmotion.coordinates.math import normalize_vector
from skmotion.planner.core.profile import Profile


logger = getLogger(__name__)


class PoseConstraint(Profile):
    """Constraint on the pose of a link.

    Subclasses define :meth:`residual`, a smooth vector which is zero
    on the constraint manifold, and :meth:`value`, a scalar which is
    compared with :attr:`tolerance`.
    """

    @abstractmethod
    def residual(self, T):
        """Return the residual vector of link pose T."""

    @abstractmethod
    def value(self, T):
        """Return the scalar compared with the tolerance."""

    def is_satisfied(self, T):
        return self.value(T) <= self.tolerance


class UprightConstraint(PoseConstraint):
    """Keep the tool z axis parallel to a world direction.

    The value is the angle between the tool z axis and ``normal``
    computed as ``atan2(|z x n|, z . n)``.

    Parameters
    ----------
    normal : list[float]
        direction the tool z axis must point to, in the base frame.
    tolerance : float
        maximum angle in radian.
    link_name : str
        constrained link. Defaults to the tcp frame of the instruction.
    max_projection_iterations : int
        Newton iterations of a projection.
    """

    def __init__(self, normal=(0.0, 0.0, -1.0), tolerance=0.05,
                 link_name=None, max_projection_iterations=50):
        if tolerance <= 0:
            raise ValueError('tolerance must be positive, got {}'.format(
                tolerance))
        self.normal = normalize_vector(normal)
        self.tolerance = float(tolerance)
        self.link_name = link_name
        self.max_projection_iterations = int(max_projection_iterations)

    def residual(self, T):
        return T[:3, 2] - self.normal

    def value(self, T):
        return angle_between_vectors(T[:3, 2], self.normal)


class ConstraintEvaluator(object):
    """Joint space evaluation of a pose constraint.

    Parameters
    ----------
    constraint : PoseConstraint
        constraint settings.
    kinematic_group : skmotion.environment.KinematicGroup
        group computing the link pose.
    link_name : str
        constrained link, used when the constraint does not name one.
    """

    def __init__(self, constraint, kinematic_group, link_name=None):
        self.constraint = constraint
        self.kinematic_group = kinematic_group
        self.link_name = constraint.link_name or link_name

    @property
    def tolerance(self):
        return self.constraint.tolerance

    def _pose(self, q):
        return self.kinematic_group.calc_fwd_kin(q, self.link_name)

    def function(self, q):
        return self.constraint.residual(self._pose(q))

    def jacobian(self, q, eps=1e-6):
        q = np.asarray(q, dtype=np.float64)
        f0 = self.function(q)
        jac = np.zeros((len(f0), len(q)))
        for i in range(len(q)):
            dq = q.copy()
            dq[i] += eps
            jac[:, i] = (self.function(dq) - f0) / eps
        return jac

    def distance(self, q):
        return self.constraint.value(self._pose(q))

    def is_satisfied(self, q):
        return self.distance(q) <= self.tolerance

    def project(self, q):
        """Project q onto the constraint by Newton iterations.

        Returns
        -------
        q : numpy.ndarray or None
            projected configuration within limits, or None if the
            iterations did not reach the tolerance.
        """
        q = np.array(q, dtype=np.float64)
        if self.is_satisfied(q):
            return q
        # stop well inside the tolerance so interpolated states stay valid
        target = 0.5 * self.tolerance
        for _ in range(self.constraint.max_projection_iterations):
            f = self.function(q)
            jac = self.jacobian(q)
            q = self.kinematic_group.clip(q - np.linalg.pinv(jac).dot(f))
            if self.distance(q) <= target:
                return q
        if self.is_satisfied(q):
            return q
        logger.debug('Projection stopped at distance %f after %d iterations',
                     self.distance(q),
                     self.constraint.max_projection_iterations)
        return None
