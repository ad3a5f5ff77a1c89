"""Cost and constraint terms of trajectory optimization.

A term maps the full trajectory, an array shape of (n_steps, n_joints),
to a residual vector. Its kind decides how the residual enters the
problem:

* ``'cost'``: penalized with ``penalty_type`` ``'squared'``
  (``sum w r^2``), ``'abs'`` (``sum w |r|``) or ``'hinge'``
  (``sum w max(r, 0)``).
* ``'eq'``: constraint ``r = 0``.
* ``'ineq'``: constraint ``r <= 0``.
"""

from abc import ABC
from abc import abstractmethod

import numpy as np

from skmotion.environment.kinematics import pose_error


TERM_KINDS = ('cost', 'eq', 'ineq')
PENALTY_TYPES = ('squared', 'abs', 'hinge')


class Term(ABC):
    """Residual term over some steps of a trajectory.

    Parameters
    ----------
    name : str
        term name for debugging.
    steps : list[int]
        steps the residual depends on.
    kind : str
        'cost', 'eq' or 'ineq'.
    weights : float or numpy.ndarray
        weight of every residual row.
    penalty_type : str
        penalty of a cost term.
    """

    def __init__(self, name, steps, kind='cost', weights=1.0,
                 penalty_type='squared'):
        if kind not in TERM_KINDS:
            raise ValueError('Invalid term kind {}. Valid kinds are {}'
                             .format(kind, TERM_KINDS))
        if penalty_type not in PENALTY_TYPES:
            raise ValueError('Invalid penalty type {}. Valid types are {}'
                             .format(penalty_type, PENALTY_TYPES))
        self.name = name
        self.steps = [int(s) for s in steps]
        self.kind = kind
        self.weights = weights
        self.penalty_type = penalty_type

    @abstractmethod
    def value(self, traj):
        """Return the residual vector of traj."""

    def jacobian(self, traj, eps=1e-6):
        """Jacobian with respect to the flattened trajectory.

        Computed by forward differences over the columns of
        :attr:`steps`.

        Returns
        -------
        jac : numpy.ndarray
            array shape of (n_rows, n_steps * n_joints).
        """
        traj = np.array(traj, dtype=np.float64)
        n_steps, n_dof = traj.shape
        r0 = self.value(traj)
        jac = np.zeros((len(r0), n_steps * n_dof))
        for step in self.steps:
            for j in range(n_dof):
                perturbed = traj.copy()
                perturbed[step, j] += eps
                jac[:, step * n_dof + j] = (self.value(perturbed) - r0) / eps
        return jac

    def row_weights(self, n_rows):
        return np.broadcast_to(np.asarray(self.weights, dtype=np.float64),
                               (n_rows,)).copy()

    def penalty(self, traj):
        """Weighted penalty of the residual at traj."""
        r = self.value(traj)
        w = self.row_weights(len(r))
        if self.kind == 'eq' or self.penalty_type == 'abs':
            return float(np.sum(w * np.abs(r)))
        if self.kind == 'ineq' or self.penalty_type == 'hinge':
            return float(np.sum(w * np.maximum(r, 0.0)))
        return float(np.sum(w * r ** 2))

    def violation(self, traj):
        """Largest constraint violation. 0 for cost terms."""
        if self.kind == 'cost':
            return 0.0
        r = self.value(traj)
        if len(r) == 0:
            return 0.0
        if self.kind == 'eq':
            return float(np.max(np.abs(r)))
        return float(max(0.0, np.max(r)))

    def __repr__(self):
        return '<{} {} {} steps={}>'.format(
            self.__class__.__name__, self.name, self.kind, self.steps)


class LinearTerm(Term):
    """Term whose residual is ``A x - b`` of the flattened trajectory."""

    def __init__(self, name, steps, A, b, **kwargs):
        super(LinearTerm, self).__init__(name, steps, **kwargs)
        self.A = np.asarray(A, dtype=np.float64)
        self.b = np.asarray(b, dtype=np.float64)

    def value(self, traj):
        return self.A.dot(np.asarray(traj).reshape(-1)) - self.b

    def jacobian(self, traj, eps=None):
        return self.A


def joint_position_term(step, target, n_steps, weights=1.0, kind='eq',
                        penalty_type='squared'):
    """Residual ``q[step] - target``."""
    target = np.asarray(target, dtype=np.float64)
    n_dof = len(target)
    A = np.zeros((n_dof, n_steps * n_dof))
    A[:, step * n_dof:(step + 1) * n_dof] = np.eye(n_dof)
    return LinearTerm('joint_position_{}'.format(step), [step], A, target,
                      kind=kind, weights=weights, penalty_type=penalty_type)


def _difference_term(name, order, start, end, n_steps, n_dof, weights,
                     kind='cost', penalty_type='squared', offset=None):
    stencils = {1: [-1, 1], 2: [1, -2, 1], 3: [-1, 3, -3, 1]}
    stencil = stencils[order]
    rows = []
    for t in range(start, end - order + 1):
        row = np.zeros((n_dof, n_steps * n_dof))
        for k, c in enumerate(stencil):
            s = t + k
            row[:, s * n_dof:(s + 1) * n_dof] += c * np.eye(n_dof)
        rows.append(row)
    if rows:
        A = np.vstack(rows)
    else:
        A = np.zeros((0, n_steps * n_dof))
    if offset is None:
        b = np.zeros(len(A))
    else:
        b = np.tile(np.asarray(offset, dtype=np.float64), len(rows))
    w = np.tile(np.broadcast_to(np.asarray(weights, dtype=np.float64),
                                (n_dof,)), len(rows))
    return LinearTerm(name, list(range(start, end + 1)), A, b, kind=kind,
                      weights=w, penalty_type=penalty_type)


def joint_velocity_term(start, end, n_steps, n_dof, weights=1.0):
    """Squared cost of ``q[t + 1] - q[t]`` over steps start to end."""
    return _difference_term('joint_velocity_{}_{}'.format(start, end), 1,
                            start, end, n_steps, n_dof, weights)


def joint_acceleration_term(start, end, n_steps, n_dof, weights=1.0):
    """Squared cost of ``q[t + 1] - 2 q[t] + q[t - 1]``."""
    return _difference_term('joint_acceleration_{}_{}'.format(start, end),
                            2, start, end, n_steps, n_dof, weights)


def joint_jerk_term(start, end, n_steps, n_dof, weights=1.0):
    return _difference_term('joint_jerk_{}_{}'.format(start, end), 3,
                            start, end, n_steps, n_dof, weights)


def joint_velocity_limit_terms(start, end, n_steps, velocity_limits, dt):
    """Inequality constraints ``|q[t + 1] - q[t]| <= v_max dt``."""
    limits = np.asarray(velocity_limits, dtype=np.float64) * dt
    n_dof = len(limits)
    upper = _difference_term(
        'joint_velocity_limit_upper_{}_{}'.format(start, end), 1, start,
        end, n_steps, n_dof, 1.0, kind='ineq', offset=limits)
    lower = _difference_term(
        'joint_velocity_limit_lower_{}_{}'.format(start, end), 1, start,
        end, n_steps, n_dof, 1.0, kind='ineq', offset=limits)
    lower.A = -lower.A
    return [upper, lower]


class CartesianPoseTerm(Term):
    """Pose error of a link at one step.

    Residual rows are translation error then rotation error vector,
    multiplied by ``coeffs``. Rows with zero coefficient are dropped.

    Parameters
    ----------
    step : int
        step index.
    target : numpy.ndarray
        4x4 target pose in the group base frame.
    kinematic_group : skmotion.environment.KinematicGroup
        group computing the pose.
    link_name : str
        link to place at target.
    coeffs : list[float]
        6 coefficients.
    """

    def __init__(self, step, target, kinematic_group, link_name, coeffs,
                 kind='eq', penalty_type='squared'):
        super(CartesianPoseTerm, self).__init__(
            'cartesian_pose_{}'.format(step), [step], kind=kind,
            penalty_type=penalty_type)
        self.target = np.asarray(target, dtype=np.float64)
        self.kinematic_group = kinematic_group
        self.link_name = link_name
        coeffs = np.broadcast_to(np.asarray(coeffs, dtype=np.float64), (6,))
        self._rows = np.nonzero(coeffs)[0]
        self.coeffs = coeffs[self._rows]

    def value(self, traj):
        T = self.kinematic_group.calc_fwd_kin(traj[self.steps[0]],
                                              self.link_name)
        return self.coeffs * pose_error(T, self.target)[self._rows]


class JointFunctionTerm(Term):
    """User defined residual ``function(q)`` applied at every step.

    Parameters
    ----------
    name : str
        term name.
    steps : list[int]
        steps the function is applied to.
    function : callable
        ``f(q) -> numpy.ndarray``.
    """

    def __init__(self, name, steps, function, kind='cost', weights=1.0,
                 penalty_type='squared'):
        super(JointFunctionTerm, self).__init__(
            name, steps, kind=kind, weights=weights,
            penalty_type=penalty_type)
        self.function = function

    def value(self, traj):
        if not self.steps:
            return np.zeros(0)
        return np.concatenate([np.atleast_1d(self.function(traj[s]))
                               for s in self.steps])


class PoseConstraintTerm(JointFunctionTerm):
    """``value(q) - tolerance <= 0`` of a pose constraint per step."""

    def __init__(self, steps, evaluator, kind='ineq', weights=1.0):
        super(PoseConstraintTerm, self).__init__(
            'pose_constraint', steps,
            lambda q: evaluator.distance(q) - evaluator.tolerance,
            kind=kind, weights=weights, penalty_type='hinge')


class CollisionTerm(Term):
    """Hinge of ``margin - distance`` for every checked pair and step.

    Parameters
    ----------
    steps : list[int]
        steps to check. In continuous mode the motion from each step to
        the next is checked.
    contact_manager : skmotion.collision.DiscreteContactManager
        manager owned by the term.
    state_solver : skmotion.environment.StateSolver
        solver computing link transforms.
    joint_names : list[str]
        names of the trajectory columns.
    margin : float
        pairs closer than margin are penalized.
    continuous : bool
        check interpolated states between consecutive steps.
    longest_valid_segment_length : float
        joint space resolution of continuous checks.
    """

    def __init__(self, steps, contact_manager, state_solver, joint_names,
                 margin, kind='cost', weights=1.0, continuous=False,
                 longest_valid_segment_length=0.05):
        name = 'collision_{}_{}'.format(
            'continuous' if continuous else 'discrete', kind)
        super(CollisionTerm, self).__init__(
            name, steps, kind=kind, weights=weights, penalty_type='hinge')
        self.contact_manager = contact_manager
        self.state_solver = state_solver
        self.joint_names = list(joint_names)
        self.margin = margin
        self.continuous = continuous
        self.longest_valid_segment_length = longest_valid_segment_length
        self.n_pairs = len(contact_manager.candidate_pairs())
        if continuous:
            self._blocks = [[s, s + 1] for s in self.steps[:-1]
                            if s + 1 in self.steps]
        else:
            self._blocks = [[s] for s in self.steps]

    def _distances(self, q):
        self.contact_manager.set_collision_objects_transform(
            self.state_solver.get_state(self.joint_names, q))
        return self.contact_manager.distance_vector()[1]

    def _block_value(self, traj, block):
        if not self.continuous:
            return self.margin - self._distances(traj[block[0]])
        q0, q1 = traj[block[0]], traj[block[1]]
        n = max(1, int(np.ceil(np.max(np.abs(q1 - q0))
                               / self.longest_valid_segment_length)))
        dists = np.min([self._distances(q0 + f * (q1 - q0))
                        for f in np.linspace(0.0, 1.0, n + 1)], axis=0)
        return self.margin - dists

    def value(self, traj):
        if self.n_pairs == 0 or not self._blocks:
            return np.zeros(0)
        return np.concatenate([self._block_value(traj, block)
                               for block in self._blocks])

    def jacobian(self, traj, eps=1e-6):
        # rows of a block only depend on the steps of the block
        traj = np.array(traj, dtype=np.float64)
        n_steps, n_dof = traj.shape
        m = self.n_pairs
        jac = np.zeros((len(self._blocks) * m if m else 0,
                        n_steps * n_dof))
        if m == 0:
            return jac
        for k, block in enumerate(self._blocks):
            r0 = self._block_value(traj, block)
            for step in block:
                for j in range(n_dof):
                    perturbed = traj.copy()
                    perturbed[step, j] += eps
                    jac[k * m:(k + 1) * m, step * n_dof + j] = \
                        (self._block_value(perturbed, block) - r0) / eps
        return jac
