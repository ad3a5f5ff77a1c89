# flake8: noqa

from skmotion.collision.contact_manager import AllowedCollisionMatrix
from skmotion.collision.contact_manager import ContactResult
from skmotion.collision.contact_manager import ContinuousContactManager
from skmotion.collision.contact_manager import DiscreteContactManager
from skmotion.collision.distance import collision_distance
from skmotion.collision.geometry import Box
from skmotion.collision.geometry import Capsule
from skmotion.collision.geometry import CollisionGeometry
from skmotion.collision.geometry import HalfSpace
from skmotion.collision.geometry import PointCloud
from skmotion.collision.geometry import Sphere
