# flake8: noqa

from skmotion.planner.sqp_based.motion_planner import SQPMotionPlanner
from skmotion.planner.sqp_based.problem import SQPProblem
from skmotion.planner.sqp_based.problem import TrustRegionParameters
from skmotion.planner.sqp_based.profile import SQPCompositeProfile
from skmotion.planner.sqp_based.profile import SQPPlanProfile
from skmotion.planner.sqp_based.profile import SQPSolverProfile
from skmotion.planner.sqp_based.solver import SQPResult
from skmotion.planner.sqp_based.solver import SQPStatus
from skmotion.planner.sqp_based.solver import TrustRegionSQP
from skmotion.planner.sqp_based.terms import CartesianPoseTerm
from skmotion.planner.sqp_based.terms import CollisionTerm
from skmotion.planner.sqp_based.terms import JointFunctionTerm
from skmotion.planner.sqp_based.terms import LinearTerm
from skmotion.planner.sqp_based.terms import PoseConstraintTerm
from skmotion.planner.sqp_based.terms import Term
