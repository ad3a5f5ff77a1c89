# flake8: noqa

from skmotion.planner.graph_based.graph import LadderGraph
from skmotion.planner.graph_based.motion_planner import GraphMotionPlanner
from skmotion.planner.graph_based.problem import GraphProblem
from skmotion.planner.graph_based.profile import GraphPlanProfile
from skmotion.planner.graph_based.samplers import FixedJointSampler
from skmotion.planner.graph_based.samplers import JointDistanceEdgeEvaluator
from skmotion.planner.graph_based.samplers import PoseSampler
from skmotion.planner.graph_based.samplers import StateCollisionChecker
from skmotion.planner.graph_based.samplers import VertexSampler
