# flake8: noqa

from skmotion.environment.environment import Environment
from skmotion.environment.environment import EnvironmentLockedError
from skmotion.environment.kinematics import KinematicGroup
from skmotion.environment.kinematics import pose_error
from skmotion.environment.scene_graph import Joint
from skmotion.environment.scene_graph import Link
from skmotion.environment.state_solver import StateSolver
