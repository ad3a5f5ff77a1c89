"""Trust region sequential quadratic programming."""

from enum import Enum
from logging import getLogger
import time

import numpy as np
from scipy.optimize import minimize


logger = getLogger(__name__)


class SQPStatus(Enum):
    CONVERGED = 'converged'
    ITERATION_LIMIT = 'iteration_limit'
    TIME_LIMIT = 'time_limit'
    PENALTY_ITERATION_LIMIT = 'penalty_iteration_limit'
    TERMINATED = 'terminated'


class SQPResult(object):
    """Result of :class:`TrustRegionSQP`.

    Attributes
    ----------
    status : SQPStatus
        outcome of the optimization.
    x : numpy.ndarray
        final decision vector.
    trajectory : numpy.ndarray
        final trajectory including fixed steps.
    merit : float
        merit of x with the final penalty coefficient.
    constraint_violation : float
        largest constraint violation of x.
    iterations : int
        number of QP solves.
    """

    def __init__(self, status, x, trajectory, merit=0.0,
                 constraint_violation=0.0, iterations=0):
        self.status = status
        self.x = x
        self.trajectory = trajectory
        self.merit = merit
        self.constraint_violation = constraint_violation
        self.iterations = iterations

    @property
    def success(self):
        return self.status == SQPStatus.CONVERGED


def _scipinize(fun):
    """Convert function returning (f, jac) to scipy format."""
    cache = {}

    def compute(x):
        key = tuple(x.tolist())
        if key not in cache:
            cache[key] = fun(x)
            if len(cache) > 100:
                oldest = next(iter(cache))
                del cache[oldest]
        return cache[key]

    def f_scipy(x):
        return compute(x)[0]

    def jac_scipy(x):
        return compute(x)[1]

    return f_scipy, jac_scipy


class ConvexModel(object):
    """Local model of the merit function around a decision vector.

    Squared rows are kept quadratic. Absolute value rows
    ``c |b + A dx|`` and hinge rows ``c max(b + A dx, 0)`` are modeled
    with slack variables in the QP.
    """

    def __init__(self, n):
        self.n = n
        self.H = np.zeros((n, n))
        self.g = np.zeros(n)
        self.c0 = 0.0
        self._abs = []
        self._hinge = []

    def add_squared(self, r0, J, w):
        WJ = w[:, None] * J
        self.H += J.T.dot(WJ)
        self.g += 2.0 * WJ.T.dot(r0)
        self.c0 += float(np.sum(w * r0 ** 2))

    def add_abs(self, r0, J, c):
        self._abs.append((r0, J, c))

    def add_hinge(self, r0, J, c):
        self._hinge.append((r0, J, c))

    @staticmethod
    def _stack(rows, n):
        if not rows:
            return np.zeros(0), np.zeros((0, n)), np.zeros(0)
        return (np.concatenate([r for r, _, _ in rows]),
                np.vstack([J for _, J, _ in rows]),
                np.concatenate([c for _, _, c in rows]))

    def finalize(self):
        self.b_abs, self.A_abs, self.c_abs = self._stack(self._abs, self.n)
        self.b_hinge, self.A_hinge, self.c_hinge = self._stack(
            self._hinge, self.n)

    def value(self, dx):
        v = self.c0 + self.g.dot(dx) + dx.dot(self.H).dot(dx)
        v += np.sum(self.c_abs * np.abs(self.b_abs + self.A_abs.dot(dx)))
        v += np.sum(self.c_hinge * np.maximum(
            self.b_hinge + self.A_hinge.dot(dx), 0.0))
        return float(v)

    def solve(self, lower, upper, maxiter=200):
        """Minimize the model over the box lower <= dx <= upper."""
        n = self.n
        ma = len(self.b_abs)
        mh = len(self.b_hinge)
        c = np.concatenate([self.c_abs, self.c_hinge])

        def objective(z):
            dx = z[:n]
            f = self.c0 + self.g.dot(dx) + dx.dot(self.H).dot(dx) \
                + c.dot(z[n:])
            grad = np.concatenate([self.g + 2.0 * self.H.dot(dx), c])
            return f, grad

        # t_abs >= +-(b + A dx), t_hinge >= b + A dx
        G = np.zeros((2 * ma + mh, n + ma + mh))
        G[:ma, :n] = -self.A_abs
        G[:ma, n:n + ma] = np.eye(ma)
        G[ma:2 * ma, :n] = self.A_abs
        G[ma:2 * ma, n:n + ma] = np.eye(ma)
        G[2 * ma:, :n] = -self.A_hinge
        G[2 * ma:, n + ma:] = np.eye(mh)
        h = np.concatenate([-self.b_abs, self.b_abs, -self.b_hinge])

        def ineq_constraint(z):
            return G.dot(z) + h, G

        z0 = np.concatenate([np.zeros(n), np.abs(self.b_abs),
                             np.maximum(self.b_hinge, 0.0)])
        z0[:n] = np.clip(z0[:n], lower, upper)
        bounds = list(zip(lower, upper)) + [(0.0, None)] * (ma + mh)
        obj_scipy, obj_jac_scipy = _scipinize(objective)
        constraints = []
        if len(h):
            ineq_scipy, ineq_jac_scipy = _scipinize(ineq_constraint)
            constraints.append(
                {'type': 'ineq', 'fun': ineq_scipy, 'jac': ineq_jac_scipy})
        result = minimize(
            obj_scipy, z0, method='SLSQP', jac=obj_jac_scipy,
            bounds=bounds, constraints=constraints,
            options={'maxiter': maxiter, 'ftol': 1e-10})
        return np.clip(result.x[:n], lower, upper)


class TrustRegionSQP(object):
    """Trust region SQP with an L1 merit function.

    Every iteration linearizes the terms of the problem around the
    current decision vector, solves the convex sub-problem inside the
    trust box and accepts the step when the true merit improvement is
    at least ``improve_ratio_threshold`` times the model improvement.
    Constraints enter the merit multiplied by a penalty coefficient
    that grows while they are violated after convergence.

    Parameters
    ----------
    problem : SQPProblem
        problem to optimize. Its ``parameters`` are used.
    termination_event : threading.Event
        polled before every QP solve.
    callback : callable
        called with the trajectory of every accepted step.
    """

    def __init__(self, problem, termination_event=None, callback=None):
        self.problem = problem
        self.parameters = problem.parameters
        self.termination_event = termination_event
        self.callback = callback
        self._free_columns = problem.free_columns
        self.iterations = 0

    def merit(self, x, merit_coeff):
        traj = self.problem.trajectory(x)
        merit = 0.0
        for term in self.problem.terms:
            if term.kind == 'cost':
                merit += term.penalty(traj)
            else:
                merit += merit_coeff * term.penalty(traj)
        return merit

    def constraint_violation(self, x):
        traj = self.problem.trajectory(x)
        violations = [term.violation(traj)
                      for term in self.problem.constraints]
        return max(violations) if violations else 0.0

    def convexify(self, x, merit_coeff):
        traj = self.problem.trajectory(x)
        model = ConvexModel(len(x))
        for term in self.problem.terms:
            r0 = term.value(traj)
            if len(r0) == 0:
                continue
            J = term.jacobian(traj)[:, self._free_columns]
            w = term.row_weights(len(r0))
            if term.kind == 'cost':
                if term.penalty_type == 'squared':
                    model.add_squared(r0, J, w)
                elif term.penalty_type == 'abs':
                    model.add_abs(r0, J, w)
                else:
                    model.add_hinge(r0, J, w)
            elif term.kind == 'eq':
                model.add_abs(r0, J, merit_coeff * w)
            else:
                model.add_hinge(r0, J, merit_coeff * w)
        model.finalize()
        return model

    def _check_limits(self, start):
        if self.termination_event is not None \
                and self.termination_event.is_set():
            return SQPStatus.TERMINATED
        if self.iterations >= self.parameters.max_iter:
            return SQPStatus.ITERATION_LIMIT
        if time.perf_counter() - start > self.parameters.max_time:
            return SQPStatus.TIME_LIMIT
        return None

    def _result(self, status, x, merit_coeff):
        result = SQPResult(
            status, x, self.problem.trajectory(x),
            merit=self.merit(x, merit_coeff),
            constraint_violation=self.constraint_violation(x),
            iterations=self.iterations)
        logger.debug('SQP finished with %s after %d iterations, merit %f, '
                     'constraint violation %f', status.name,
                     self.iterations, result.merit,
                     result.constraint_violation)
        return result

    def _optimize(self, x, merit_coeff, trust, start):
        """Run trust region iterations with a fixed penalty coefficient.

        Returns
        -------
        status : SQPStatus or None
            None when the iterations converged.
        x : numpy.ndarray
            last accepted decision vector.
        trust : float
            trust box size.
        """
        p = self.parameters
        lower, upper = self.problem.bounds()
        while True:
            status = self._check_limits(start)
            if status is not None:
                return status, x, trust
            model = self.convexify(x, merit_coeff)
            merit = model.value(np.zeros(len(x)))
            while True:
                if trust < p.min_trust_box_size:
                    logger.debug('Converged because trust region is tiny')
                    return None, x, trust
                status = self._check_limits(start)
                if status is not None:
                    return status, x, trust
                dx = model.solve(np.maximum(-trust, lower - x),
                                 np.minimum(trust, upper - x))
                self.iterations += 1
                approx_improve = merit - model.value(dx)
                if approx_improve < -1e-5:
                    logger.debug('Approximate merit function got worse (%f)',
                                 approx_improve)
                if approx_improve < p.min_approx_improve:
                    logger.debug('Converged because improvement was small '
                                 '(%f < %f)', approx_improve,
                                 p.min_approx_improve)
                    return None, x, trust
                new_x = x + dx
                exact_improve = merit - self.merit(new_x, merit_coeff)
                ratio = exact_improve / approx_improve
                logger.debug('iteration %d: merit %f, approx improve %f, '
                             'exact improve %f, ratio %f, trust %f',
                             self.iterations, merit, approx_improve,
                             exact_improve, ratio, trust)
                if ratio < p.improve_ratio_threshold:
                    trust *= p.trust_shrink_ratio
                    continue
                x = new_x
                trust *= p.trust_expand_ratio
                if self.callback is not None:
                    self.callback(self.problem.trajectory(x))
                break

    def solve(self):
        """Optimize the problem from its seed.

        Returns
        -------
        result : SQPResult
            optimization result.
        """
        p = self.parameters
        start = time.perf_counter()
        self.iterations = 0
        x = self.problem.initial_decision_vector()
        merit_coeff = p.initial_merit_error_coeff
        trust = p.trust_box_size
        if len(x) == 0:
            status = SQPStatus.CONVERGED \
                if self.constraint_violation(x) <= p.cnt_tolerance \
                else SQPStatus.PENALTY_ITERATION_LIMIT
            return self._result(status, x, merit_coeff)
        for _ in range(p.max_merit_coeff_increases + 1):
            status, x, trust = self._optimize(x, merit_coeff, trust, start)
            if status is not None:
                return self._result(status, x, merit_coeff)
            violation = self.constraint_violation(x)
            if violation <= p.cnt_tolerance:
                return self._result(SQPStatus.CONVERGED, x, merit_coeff)
            logger.debug('Constraint violation %f, increasing merit '
                         'coefficient to %f', violation,
                         merit_coeff * p.merit_coeff_increase_ratio)
            merit_coeff *= p.merit_coeff_increase_ratio
            trust = max(trust,
                        p.min_trust_box_size / p.trust_shrink_ratio * 1.5)
        return self._result(SQPStatus.PENALTY_ITERATION_LIMIT, x,
                            merit_coeff)
