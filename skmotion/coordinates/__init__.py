# flake8: noqa

from skmotion.coordinates.base import Coordinates
from skmotion.coordinates.math import angle_between_vectors
from skmotion.coordinates.math import interpolate_transform
from skmotion.coordinates.math import inverse_transform
from skmotion.coordinates.math import make_transform
from skmotion.coordinates.math import matrix2quaternion
from skmotion.coordinates.math import normalize_vector
from skmotion.coordinates.math import quaternion2matrix
from skmotion.coordinates.math import rotation_distance
from skmotion.coordinates.math import rotation_error_vector
from skmotion.coordinates.math import rotation_matrix
from skmotion.coordinates.math import rpy_matrix
