class PlanningError(Exception):
    """Base class of all planning errors."""


class ConfigurationError(PlanningError, ValueError):
    """Raised when a request cannot be turned into a planning problem.

    Configuration errors are detected before any solver resource is
    allocated.
    """


class ProfileNotFoundError(ConfigurationError):

    def __init__(self, namespace, name):
        super(ProfileNotFoundError, self).__init__(
            'Profile {} is not registered in namespace {}'.format(
                name, namespace))
        self.namespace = namespace
        self.name = name


class EmptyInstructionsError(ConfigurationError):
    """Raised when a request lacks a start and a goal instruction."""


class JointNameMismatchError(ConfigurationError):
    """Raised when joint names differ from the expected set."""


class UnsupportedWaypointError(ConfigurationError):
    """Raised for waypoints which are neither joint nor cartesian."""


class UnknownManipulatorError(ConfigurationError):
    """Raised when the manipulator group is not in the environment."""


class UnreachableWaypointError(PlanningError):
    """Raised when no valid joint configuration realises a waypoint.

    Parameters
    ----------
    message : str
        error message.
    index : int
        index of the unreachable instruction.
    """

    def __init__(self, message, index=None):
        super(UnreachableWaypointError, self).__init__(message)
        self.index = index
