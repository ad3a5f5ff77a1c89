# flake8: noqa

from skmotion.command.instruction import CompositeInstruction
from skmotion.command.instruction import DEFAULT_PROFILE
from skmotion.command.instruction import MoveInstruction
from skmotion.command.instruction import MoveInstructionType
from skmotion.command.manipulator_info import ManipulatorInfo
from skmotion.command.waypoints import CartesianWaypoint
from skmotion.command.waypoints import JointWaypoint
from skmotion.command.waypoints import is_cartesian_waypoint
from skmotion.command.waypoints import is_joint_waypoint
