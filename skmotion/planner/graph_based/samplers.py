from abc import ABC
from abc import abstractmethod
from logging import getLogger

import numpy as np

from skmotion.coordinates.math import make_transform
from skmotion.coordinates.math import rotation_matrix


logger = getLogger(__name__)


class StateCollisionChecker(object):
    """Collision checks of group joint positions.

    Parameters
    ----------
    contact_manager : skmotion.collision.DiscreteContactManager
        manager owned by the checker, active links already set.
    state_solver : skmotion.environment.StateSolver
        solver computing link transforms.
    joint_names : list[str]
        names of the checked joints.
    safety_margin : float
        states closer than this to a collision are invalid.
    """

    def __init__(self, contact_manager, state_solver, joint_names,
                 safety_margin=0.0):
        self.contact_manager = contact_manager
        self.contact_manager.set_contact_distance_threshold(safety_margin)
        self.state_solver = state_solver
        self.joint_names = list(joint_names)
        self.safety_margin = safety_margin

    def is_valid(self, q):
        self.contact_manager.set_collision_objects_transform(
            self.state_solver.get_state(self.joint_names, q))
        return not self.contact_manager.in_collision()

    def is_motion_valid(self, q0, q1, longest_valid_segment_length):
        n = max(1, int(np.ceil(np.max(np.abs(q1 - q0))
                               / longest_valid_segment_length)))
        return all(self.is_valid(q0 + f * (q1 - q0))
                   for f in np.linspace(0.0, 1.0, n + 1))


class VertexSampler(ABC):
    """Source of the candidate joint positions of one step."""

    @abstractmethod
    def sample(self):
        """Return candidate joint positions.

        Returns
        -------
        vertices : list[numpy.ndarray]
            candidates of the step.
        """


class FixedJointSampler(VertexSampler):
    """A single candidate at the given joint positions."""

    def __init__(self, positions):
        self.positions = np.array(positions, dtype=np.float64)

    def sample(self):
        return [self.positions.copy()]


class PoseSampler(VertexSampler):
    """Inverse kinematics candidates of a cartesian target.

    The target may be rotated about the z axis of the tool by each of
    ``angles`` to sample tool axis symmetric poses.

    Parameters
    ----------
    target : numpy.ndarray
        4x4 target pose in the group base frame.
    kinematic_group : skmotion.environment.KinematicGroup
        group solving inverse kinematics.
    link_name : str
        link placed at the target.
    seed : numpy.ndarray
        joint positions of the first inverse kinematics attempt.
    angles : list[float]
        rotations about the tool z axis.
    n_ik_attempts : int
        attempts per rotation.
    collision_checker : StateCollisionChecker
        candidates in collision are dropped when given.
    random_state : numpy.random.RandomState or int
        source of random restarts.
    """

    def __init__(self, target, kinematic_group, link_name, seed,
                 angles=(0.0,), n_ik_attempts=10, collision_checker=None,
                 random_state=None):
        self.target = np.asarray(target, dtype=np.float64)
        self.kinematic_group = kinematic_group
        self.link_name = link_name
        self.seed = np.asarray(seed, dtype=np.float64)
        self.angles = list(angles)
        self.n_ik_attempts = n_ik_attempts
        self.collision_checker = collision_checker
        if not isinstance(random_state, np.random.RandomState):
            random_state = np.random.RandomState(random_state)
        self.random_state = random_state

    def targets(self):
        return [self.target.dot(make_transform(
            np.zeros(3), rotation_matrix(angle, 'z')))
            for angle in self.angles]

    def sample(self):
        vertices = []
        n_solutions = 0
        for target in self.targets():
            solutions = self.kinematic_group.calc_inv_kin(
                target, self.seed, link_name=self.link_name,
                n_attempts=self.n_ik_attempts,
                random_state=self.random_state)
            n_solutions += len(solutions)
            for q in solutions:
                if any(np.allclose(q, v, atol=1e-3) for v in vertices):
                    continue
                if self.collision_checker is not None \
                        and not self.collision_checker.is_valid(q):
                    continue
                vertices.append(q)
        logger.debug('%d of %d IK solutions over %d rotations are valid',
                     len(vertices), n_solutions, len(self.angles))
        return vertices


class JointDistanceEdgeEvaluator(object):
    """Edge cost of the joint space distance between two candidates.

    Parameters
    ----------
    max_step : float
        candidates farther apart than this in any joint are not
        connected. None connects all candidates.
    collision_checker : StateCollisionChecker
        when given, edges whose motion collides are dropped.
    longest_valid_segment_length : float
        joint space resolution of edge collision checks.
    """

    def __init__(self, max_step=None, collision_checker=None,
                 longest_valid_segment_length=0.05):
        self.max_step = max_step
        self.collision_checker = collision_checker
        self.longest_valid_segment_length = longest_valid_segment_length

    def evaluate(self, q0, q1):
        """Return the cost of moving from q0 to q1, None if invalid."""
        delta = q1 - q0
        if self.max_step is not None \
                and np.max(np.abs(delta)) > self.max_step:
            return None
        if self.collision_checker is not None \
                and not self.collision_checker.is_motion_valid(
                    q0, q1, self.longest_valid_segment_length):
            return None
        return float(np.linalg.norm(delta))
