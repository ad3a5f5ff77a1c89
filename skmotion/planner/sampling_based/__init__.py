# flake8: noqa

from skmotion.planner.sampling_based.constraint import ConstraintEvaluator
from skmotion.planner.sampling_based.constraint import PoseConstraint
from skmotion.planner.sampling_based.constraint import UprightConstraint
from skmotion.planner.sampling_based.motion_planner import SamplingMotionPlanner
from skmotion.planner.sampling_based.parallel import ParallelPlan
from skmotion.planner.sampling_based.parallel import ParallelPlanStatus
from skmotion.planner.sampling_based.planners import EST
from skmotion.planner.sampling_based.planners import ESTConfigurator
from skmotion.planner.sampling_based.planners import PlannerConfigurator
from skmotion.planner.sampling_based.planners import RRT
from skmotion.planner.sampling_based.planners import RRTConfigurator
from skmotion.planner.sampling_based.planners import RRTConnect
from skmotion.planner.sampling_based.planners import RRTConnectConfigurator
from skmotion.planner.sampling_based.problem import PlanningSpace
from skmotion.planner.sampling_based.problem import SamplingProblem
from skmotion.planner.sampling_based.profile import SamplingPlanProfile
