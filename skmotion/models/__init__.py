# flake8: noqa

from skmotion.models.iiwa import IIWA14_JOINT_NAMES
from skmotion.models.iiwa import iiwa14_environment
