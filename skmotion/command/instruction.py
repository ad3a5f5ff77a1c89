from enum import Enum

from skmotion.command.manipulator_info import ManipulatorInfo
from skmotion.command.waypoints import WAYPOINT_TYPES


DEFAULT_PROFILE = 'DEFAULT'


class MoveInstructionType(Enum):
    START = 'start'
    FREESPACE = 'freespace'
    LINEAR = 'linear'


class MoveInstruction(object):
    """Motion to a waypoint.

    Parameters
    ----------
    waypoint : JointWaypoint or CartesianWaypoint
        target of the motion.
    move_type : MoveInstructionType
        how the waypoint is approached.
    profile : str
        name of the plan profile applied to this waypoint.
    manipulator_info : ManipulatorInfo
        per instruction override of the request manipulator info.
    fixed : bool
        whether a joint waypoint must be reached exactly.
    description : str
        free text description.

    Notes
    -----
    ``index`` and ``parent`` are assigned by the
    :class:`CompositeInstruction` holding the instruction.
    """

    def __init__(self, waypoint, move_type=MoveInstructionType.FREESPACE,
                 profile=DEFAULT_PROFILE, manipulator_info=None, fixed=True,
                 description=''):
        if not isinstance(move_type, MoveInstructionType):
            move_type = MoveInstructionType(move_type)
        if manipulator_info is not None \
                and not isinstance(manipulator_info, ManipulatorInfo):
            raise TypeError(
                'manipulator_info must be ManipulatorInfo, got {}'.format(
                    type(manipulator_info)))
        self._waypoint = waypoint
        self._move_type = move_type
        self._profile = profile or DEFAULT_PROFILE
        self._manipulator_info = manipulator_info
        self._fixed = bool(fixed)
        self.description = description
        self.index = None
        self.parent = None

    @property
    def waypoint(self):
        return self._waypoint

    @property
    def move_type(self):
        return self._move_type

    @property
    def profile(self):
        return self._profile

    @property
    def manipulator_info(self):
        return self._manipulator_info

    @property
    def fixed(self):
        return self._fixed

    def is_start(self):
        return self._move_type == MoveInstructionType.START

    def is_linear(self):
        return self._move_type == MoveInstructionType.LINEAR

    def has_supported_waypoint(self):
        return isinstance(self._waypoint, WAYPOINT_TYPES)

    def __repr__(self):
        return 'MoveInstruction({}, {!r}, profile={!r}, index={})'.format(
            self._move_type.name, self._waypoint, self._profile, self.index)


class CompositeInstruction(object):
    """Ordered group of move instructions and nested composites.

    Parameters
    ----------
    instructions : list[MoveInstruction or CompositeInstruction]
        children in execution order.
    profile : str
        name of the composite profile applied to the range of moves of
        this composite.
    manipulator_info : ManipulatorInfo
        manipulator info of the children.
    description : str
        free text description.

    Examples
    --------
    >>> from skmotion.command import CompositeInstruction, MoveInstruction
    >>> from skmotion.command import JointWaypoint
    >>> wp = JointWaypoint([0.0], ['j1'])
    >>> program = CompositeInstruction(
    ...     [MoveInstruction(wp, 'start'), MoveInstruction(wp)])
    >>> [move.index for move in program.flatten()]
    [0, 1]
    """

    def __init__(self, instructions, profile=DEFAULT_PROFILE,
                 manipulator_info=None, description=''):
        for instruction in instructions:
            if not isinstance(instruction,
                              (MoveInstruction, CompositeInstruction)):
                raise TypeError(
                    'Unsupported instruction type {}'.format(
                        type(instruction)))
        self._instructions = tuple(instructions)
        self._profile = profile or DEFAULT_PROFILE
        self._manipulator_info = manipulator_info
        self.description = description
        self.parent = None
        for child in self._instructions:
            child.parent = self
        self._assign_indices(0)

    def _assign_indices(self, start):
        index = start
        for child in self._instructions:
            if isinstance(child, CompositeInstruction):
                index = child._assign_indices(index)
            else:
                child.index = index
                index += 1
        return index

    @property
    def instructions(self):
        return self._instructions

    @property
    def profile(self):
        return self._profile

    @property
    def manipulator_info(self):
        return self._manipulator_info

    def __len__(self):
        return len(self._instructions)

    def __iter__(self):
        return iter(self._instructions)

    def __getitem__(self, i):
        return self._instructions[i]

    def flatten(self):
        """Return move instructions in execution order.

        Returns
        -------
        moves : list[MoveInstruction]
            every move instruction of this composite and its children.
        """
        moves = []
        for child in self._instructions:
            if isinstance(child, CompositeInstruction):
                moves.extend(child.flatten())
            else:
                moves.append(child)
        return moves

    def composite_ranges(self):
        """Return the move index range of this and nested composites.

        Returns
        -------
        ranges : list[tuple(CompositeInstruction, int, int)]
            composite, index of its first move and index of its last
            move, in pre-order. Composites without moves are skipped.
        """
        ranges = []
        moves = self.flatten()
        if moves:
            ranges.append((self, moves[0].index, moves[-1].index))
        for child in self._instructions:
            if isinstance(child, CompositeInstruction):
                ranges.extend(child.composite_ranges())
        return ranges

    def get_manipulator_info(self, move, default=None):
        """Return manipulator info effective for a move instruction.

        The move info is combined with the infos of its parent
        composites and finally with default.
        """
        info = move.manipulator_info
        node = move.parent
        while node is not None:
            if node.manipulator_info is not None:
                info = node.manipulator_info if info is None \
                    else info.get_combined(node.manipulator_info)
            node = node.parent
        if info is None:
            return default
        return info.get_combined(default)

    def __repr__(self):
        return 'CompositeInstruction({} instructions, profile={!r})'.format(
            len(self._instructions), self._profile)
