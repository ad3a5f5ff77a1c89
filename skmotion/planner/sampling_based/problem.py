import numpy as np


class SamplingProblem(object):
    """Native problem of one segment of a sampling based plan.

    A segment connects the states of a start instruction to the states
    of the following goal instruction. Plan profiles fill the start and
    goal states and the planner settings.

    Parameters
    ----------
    joint_names : list[str]
        group joint names.
    limits : numpy.ndarray
        position limits shape of (n_joints, 2).
    contact_manager : skmotion.collision.DiscreteContactManager
        template manager with active objects set. Workers clone it.
    state_solver : skmotion.environment.StateSolver
        solver computing link transforms.
    start_index : int
        index of the start instruction.
    end_index : int
        index of the goal instruction.
    """

    def __init__(self, joint_names, limits, contact_manager, state_solver,
                 start_index, end_index):
        self.joint_names = list(joint_names)
        self.limits = np.asarray(limits, dtype=np.float64)
        self.contact_manager = contact_manager
        self.state_solver = state_solver
        self.start_index = start_index
        self.end_index = end_index

        self.start_states = []
        self.goal_states = []
        self.configurators = []
        self.planning_time = 5.0
        self.max_solutions = 1
        self.simplify = False
        self.n_output_states = 20
        self.collision_safety_margin = 0.0
        self.longest_valid_segment_fraction = 0.01
        self.constraint = None
        self.state_validity_checker = None
        self.random_seed = None

        # grown trees kept between solves
        self.planners = None
        self.planners_start = None

    @property
    def n_joints(self):
        return len(self.joint_names)

    @property
    def extent(self):
        return float(np.linalg.norm(self.limits[:, 1] - self.limits[:, 0]))

    @property
    def motion_resolution(self):
        return self.longest_valid_segment_fraction * self.extent

    def make_space(self, index=0):
        """Return a planning space owning a clone of the contact manager.

        Parameters
        ----------
        index : int
            worker index, offsets the random seed.
        """
        if self.random_seed is None:
            random_state = np.random.RandomState()
        else:
            random_state = np.random.RandomState(self.random_seed + index)
        manager = self.contact_manager.clone()
        manager.set_contact_distance_threshold(self.collision_safety_margin)
        return PlanningSpace(self, manager, random_state)

    def reset_planners(self):
        self.planners = None
        self.planners_start = None


class PlanningSpace(object):
    """Joint space of a segment with validity and motion checking.

    Each worker thread owns its own space.
    """

    def __init__(self, problem, contact_manager, random_state):
        self.problem = problem
        self.contact_manager = contact_manager
        self.random_state = random_state
        self.lower = problem.limits[:, 0]
        self.upper = problem.limits[:, 1]
        self.resolution = problem.motion_resolution
        self.constraint = problem.constraint
        self.n_checks = 0

    def sample(self):
        q = self.random_state.uniform(self.lower, self.upper)
        return self.project(q)

    def project(self, q):
        """Project q onto the constraint. Returns None on failure."""
        if self.constraint is None:
            return q
        return self.constraint.project(q)

    def distance(self, q1, q2):
        return float(np.linalg.norm(q1 - q2))

    def satisfies_bounds(self, q):
        return bool(np.all(q >= self.lower - 1e-9)
                    and np.all(q <= self.upper + 1e-9))

    def is_valid(self, q):
        """Check bounds, constraint, user checker and collision."""
        self.n_checks += 1
        if not self.satisfies_bounds(q):
            return False
        if self.constraint is not None \
                and not self.constraint.is_satisfied(q):
            return False
        checker = self.problem.state_validity_checker
        if checker is not None and not checker(q):
            return False
        transforms = self.problem.state_solver.get_state(
            self.problem.joint_names, q)
        self.contact_manager.set_collision_objects_transform(transforms)
        return len(self.contact_manager.contact_test()) == 0

    def interpolate(self, q1, q2, fraction):
        """Interpolate two states, projecting onto the constraint."""
        if fraction <= 0.0:
            return q1
        if fraction >= 1.0:
            return q2
        q = q1 + fraction * (q2 - q1)
        if self.constraint is not None \
                and not self.constraint.is_satisfied(q):
            q = self.constraint.project(q)
        return q

    def check_motion(self, q1, q2):
        """Check intermediate states of the motion from q1 to q2.

        q1 is assumed valid. States are checked every
        :attr:`resolution` in joint space.
        """
        n = int(np.ceil(self.distance(q1, q2) / self.resolution))
        prev = q1
        for i in range(1, n + 1):
            q = self.interpolate(q1, q2, i / float(n))
            if q is None or not self.is_valid(q):
                return False
            # projected states must not jump
            if self.distance(prev, q) > 2.0 * self.resolution:
                return False
            prev = q
        return True
