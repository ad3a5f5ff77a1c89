"""Tree based sampling planners and their configurators.

Planners advance by :meth:`step` so that the caller can poll for
termination and deadlines between iterations. Their trees persist
between calls, so a planner keeps growing them across solves.
"""

from abc import ABC
from abc import abstractmethod

import numpy as np

from skmotion.planner.core.profile import Profile


class Tree(object):
    """Tree of configurations stored in preallocated arrays.

    Roots have parent index -1.
    """

    def __init__(self, n_dof, capacity=1024):
        self._configs = np.zeros((capacity, n_dof))
        self._parents = np.zeros(capacity, dtype=np.int64)
        self.n_nodes = 0

    def add(self, q, parent=-1):
        if self.n_nodes == len(self._configs):
            self._configs = np.concatenate(
                [self._configs, np.zeros_like(self._configs)])
            self._parents = np.concatenate(
                [self._parents, np.zeros_like(self._parents)])
        self._configs[self.n_nodes] = q
        self._parents[self.n_nodes] = parent
        self.n_nodes += 1
        return self.n_nodes - 1

    @property
    def configs(self):
        return self._configs[:self.n_nodes]

    def config(self, index):
        return self._configs[index]

    def nearest(self, q):
        sqdists = np.sum((self.configs - q[None, :]) ** 2, axis=1)
        return int(np.argmin(sqdists))

    def near(self, q, radius):
        sqdists = np.sum((self.configs - q[None, :]) ** 2, axis=1)
        return np.nonzero(sqdists <= radius ** 2)[0]

    def path_to_root(self, index):
        """Return configurations from the root to index."""
        path = []
        while index != -1:
            path.append(self._configs[index].copy())
            index = int(self._parents[index])
        path.reverse()
        return path


class TreePlanner(ABC):
    """Base class of tree planners.

    Parameters
    ----------
    space : PlanningSpace
        space of the segment, owned by the worker.
    start_states : list[numpy.ndarray]
        valid start states.
    goal_states : list[numpy.ndarray]
        valid goal states.
    range : float
        maximum length of an extension. 0 selects a fifth of the
        space extent.
    """

    def __init__(self, space, start_states, goal_states, range=0.0):
        self.space = space
        if range <= 0:
            range = 0.2 * space.problem.extent
        self.range = range
        self.iterations = 0
        n_dof = len(start_states[0])
        self.start_tree = Tree(n_dof)
        for q in start_states:
            self.start_tree.add(q)
        self.goal_states = [np.asarray(q) for q in goal_states]

    def step(self):
        """Run one iteration.

        Returns
        -------
        path : list[numpy.ndarray] or None
            path from a start state to a goal state once found.
        """
        self.iterations += 1
        return self._step()

    @abstractmethod
    def _step(self):
        """Grow the trees by one iteration."""

    def _steer(self, q_from, q_to):
        diff = q_to - q_from
        dist = np.linalg.norm(diff)
        if dist <= self.range:
            return q_to
        return self.space.project(q_from + diff * (self.range / dist))

    def _extend(self, tree, target):
        index = tree.nearest(target)
        q_near = tree.config(index)
        q_new = self._steer(q_near, target)
        if q_new is None or self.space.distance(q_near, q_new) < 1e-12:
            return None
        if not self.space.check_motion(q_near, q_new):
            return None
        return tree.add(q_new, index)

    def _try_goals(self, index):
        """Connect node index of the start tree directly to a goal."""
        q = self.start_tree.config(index)
        for goal in self.goal_states:
            if np.array_equal(q, goal):
                return self.start_tree.path_to_root(index)
            if self.space.distance(q, goal) <= self.range \
                    and self.space.check_motion(q, goal):
                return self.start_tree.path_to_root(index) + [goal.copy()]
        return None


class RRTConnect(TreePlanner):
    """Bidirectional RRT growing a start tree and a goal tree."""

    def __init__(self, space, start_states, goal_states, range=0.0):
        super(RRTConnect, self).__init__(space, start_states, goal_states,
                                         range)
        self.goal_tree = Tree(len(start_states[0]))
        for q in goal_states:
            self.goal_tree.add(q)
        self._swapped = False

    def _connect(self, tree, target):
        max_steps = int(np.ceil(
            self.space.distance(tree.config(tree.nearest(target)), target)
            / self.range)) * 2 + 10
        for _ in range(max_steps):
            index = self._extend(tree, target)
            if index is None:
                return None
            if self.space.distance(tree.config(index), target) < 1e-9:
                return index
        return None

    def _step(self):
        if self._swapped:
            tree_a, tree_b = self.goal_tree, self.start_tree
        else:
            tree_a, tree_b = self.start_tree, self.goal_tree
        self._swapped = not self._swapped
        q_rand = self.space.sample()
        if q_rand is None:
            return None
        index_a = self._extend(tree_a, q_rand)
        if index_a is None:
            return None
        index_b = self._connect(tree_b, tree_a.config(index_a))
        if index_b is None:
            return None
        path_a = tree_a.path_to_root(index_a)
        path_b = tree_b.path_to_root(index_b)
        # the connected nodes are the same configuration
        path = path_a + list(reversed(path_b))[1:]
        if tree_a is self.goal_tree:
            path.reverse()
        return path


class RRT(TreePlanner):
    """Unidirectional RRT with goal biased sampling.

    Parameters
    ----------
    goal_bias : float
        probability of sampling a goal state.
    """

    def __init__(self, space, start_states, goal_states, range=0.0,
                 goal_bias=0.05):
        super(RRT, self).__init__(space, start_states, goal_states, range)
        self.goal_bias = goal_bias

    def _step(self):
        rng = self.space.random_state
        if rng.uniform() < self.goal_bias:
            q_rand = self.goal_states[rng.randint(len(self.goal_states))]
        else:
            q_rand = self.space.sample()
        if q_rand is None:
            return None
        index = self._extend(self.start_tree, q_rand)
        if index is None:
            return None
        return self._try_goals(index)


class EST(TreePlanner):
    """Expansive space tree.

    Nodes in sparse regions are expanded more often. A node's weight is
    the inverse of one plus its number of neighbours within range.

    Parameters
    ----------
    goal_bias : float
        probability of extending toward a goal state.
    """

    def __init__(self, space, start_states, goal_states, range=0.0,
                 goal_bias=0.05):
        super(EST, self).__init__(space, start_states, goal_states, range)
        self.goal_bias = goal_bias
        self._neighbors = [0] * self.start_tree.n_nodes

    def _add(self, q, parent):
        near = self.start_tree.near(q, self.range)
        for i in near:
            self._neighbors[i] += 1
        index = self.start_tree.add(q, parent)
        self._neighbors.append(len(near))
        return index

    def _step(self):
        rng = self.space.random_state
        tree = self.start_tree
        if rng.uniform() < self.goal_bias:
            goal = self.goal_states[rng.randint(len(self.goal_states))]
            parent = tree.nearest(goal)
            target = goal
        else:
            weights = 1.0 / (1.0 + np.asarray(self._neighbors[:tree.n_nodes],
                                              dtype=np.float64))
            parent = int(rng.choice(tree.n_nodes, p=weights / weights.sum()))
            q_parent = tree.config(parent)
            target = q_parent + rng.uniform(-self.range, self.range,
                                            size=len(q_parent))
            target = np.clip(target, self.space.lower, self.space.upper)
        q_parent = tree.config(parent)
        q_new = self._steer(q_parent, target)
        if q_new is None or self.space.distance(q_parent, q_new) < 1e-12:
            return None
        if not self.space.check_motion(q_parent, q_new):
            return None
        return self._try_goals(self._add(q_new, parent))


class PlannerConfigurator(Profile):
    """Serializable settings creating one tree planner."""

    @abstractmethod
    def create(self, space, start_states, goal_states):
        """Return a planner growing trees from start_states."""


class RRTConnectConfigurator(PlannerConfigurator):

    def __init__(self, range=0.0):
        self.range = range

    def create(self, space, start_states, goal_states):
        return RRTConnect(space, start_states, goal_states, self.range)


class RRTConfigurator(PlannerConfigurator):

    def __init__(self, range=0.0, goal_bias=0.05):
        self.range = range
        self.goal_bias = goal_bias

    def create(self, space, start_states, goal_states):
        return RRT(space, start_states, goal_states, self.range,
                   self.goal_bias)


class ESTConfigurator(PlannerConfigurator):

    def __init__(self, range=0.0, goal_bias=0.05):
        self.range = range
        self.goal_bias = goal_bias

    def create(self, space, start_states, goal_states):
        return EST(space, start_states, goal_states, self.range,
                   self.goal_bias)
