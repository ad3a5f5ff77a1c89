import numpy as np


class TrustRegionParameters(object):
    """Settings of :class:`TrustRegionSQP`.

    Parameters
    ----------
    max_iter : int
        maximum number of accepted and rejected QP iterations.
    trust_box_size : float
        initial half width of the step box.
    trust_expand_ratio : float
        box scale after an accepted step.
    trust_shrink_ratio : float
        box scale after a rejected step.
    min_trust_box_size : float
        convergence when the box is smaller than this.
    min_approx_improve : float
        convergence when the model improvement is smaller than this.
    improve_ratio_threshold : float
        steps whose true to model improvement ratio is smaller than
        this are rejected.
    cnt_tolerance : float
        largest constraint violation of a feasible solution.
    initial_merit_error_coeff : float
        initial penalty coefficient of constraint violation.
    merit_coeff_increase_ratio : float
        penalty coefficient scale while constraints are violated.
    max_merit_coeff_increases : int
        penalty increases before the problem is declared infeasible.
    max_time : float
        wall clock limit in seconds.
    """

    def __init__(self, max_iter=100, trust_box_size=0.1,
                 trust_expand_ratio=1.5, trust_shrink_ratio=0.1,
                 min_trust_box_size=1e-4, min_approx_improve=1e-4,
                 improve_ratio_threshold=0.25, cnt_tolerance=1e-4,
                 initial_merit_error_coeff=10.0,
                 merit_coeff_increase_ratio=10.0,
                 max_merit_coeff_increases=5, max_time=np.inf):
        self.max_iter = max_iter
        self.trust_box_size = trust_box_size
        self.trust_expand_ratio = trust_expand_ratio
        self.trust_shrink_ratio = trust_shrink_ratio
        self.min_trust_box_size = min_trust_box_size
        self.min_approx_improve = min_approx_improve
        self.improve_ratio_threshold = improve_ratio_threshold
        self.cnt_tolerance = cnt_tolerance
        self.initial_merit_error_coeff = initial_merit_error_coeff
        self.merit_coeff_increase_ratio = merit_coeff_increase_ratio
        self.max_merit_coeff_increases = max_merit_coeff_increases
        self.max_time = max_time


class SQPProblem(object):
    """Trajectory optimization problem with one step per instruction.

    The decision vector holds the joint positions of every step that is
    not fixed, step major. Fixed steps keep their positions exactly.

    Parameters
    ----------
    joint_names : list[str]
        group joint names, the trajectory columns.
    limits : numpy.ndarray
        joint limits, array shape of (n_joints, 2).
    n_steps : int
        number of steps.
    contact_manager : skmotion.collision.DiscreteContactManager
        manager with the active links of the group set.
    state_solver : skmotion.environment.StateSolver
        snapshot of the environment state.
    velocity_limits : numpy.ndarray
        joint velocity limits.
    """

    def __init__(self, joint_names, limits, n_steps, contact_manager=None,
                 state_solver=None, velocity_limits=None):
        self.joint_names = list(joint_names)
        self.limits = np.asarray(limits, dtype=np.float64)
        self.n_steps = n_steps
        self.contact_manager = contact_manager
        self.state_solver = state_solver
        self.velocity_limits = velocity_limits
        self.n_dof = len(self.joint_names)
        self.fixed_steps = {}
        self.terms = []
        self.seed = None
        self.parameters = TrustRegionParameters()

    def fix_step(self, step, positions):
        """Remove step from the decision vector and keep it at positions."""
        positions = np.array(positions, dtype=np.float64)
        if positions.shape != (self.n_dof,):
            raise ValueError(
                'positions of step {} must have shape ({},), got {}'.format(
                    step, self.n_dof, positions.shape))
        self.fixed_steps[int(step)] = positions

    def is_fixed(self, step):
        return step in self.fixed_steps

    def add_term(self, term):
        self.terms.append(term)

    def add_terms(self, terms):
        for term in terms:
            self.add_term(term)

    @property
    def costs(self):
        return [t for t in self.terms if t.kind == 'cost']

    @property
    def constraints(self):
        return [t for t in self.terms if t.kind != 'cost']

    @property
    def free_steps(self):
        return [s for s in range(self.n_steps) if s not in self.fixed_steps]

    @property
    def free_columns(self):
        """Columns of the flattened trajectory in the decision vector."""
        return np.array([s * self.n_dof + j for s in self.free_steps
                         for j in range(self.n_dof)], dtype=np.int64)

    def set_seed(self, seed):
        seed = np.array(seed, dtype=np.float64)
        if seed.shape != (self.n_steps, self.n_dof):
            raise ValueError(
                'seed must have shape ({}, {}), got {}'.format(
                    self.n_steps, self.n_dof, seed.shape))
        self.seed = seed

    def trajectory(self, x):
        """Full trajectory of a decision vector.

        Returns
        -------
        traj : numpy.ndarray
            array shape of (n_steps, n_joints).
        """
        traj = np.zeros((self.n_steps, self.n_dof))
        free = self.free_steps
        if free:
            traj[free] = np.asarray(x).reshape(len(free), self.n_dof)
        for step, q in self.fixed_steps.items():
            traj[step] = q
        return traj

    def decision_vector(self, traj):
        return np.asarray(traj)[self.free_steps].reshape(-1).copy()

    def initial_decision_vector(self):
        if self.seed is None:
            raise ValueError('SQPProblem has no seed')
        x0 = self.decision_vector(self.seed)
        lower, upper = self.bounds()
        return np.clip(x0, lower, upper)

    def bounds(self):
        n_free = len(self.free_steps)
        lower = np.tile(self.limits[:, 0], n_free)
        upper = np.tile(self.limits[:, 1], n_free)
        return lower, upper
