from collections import namedtuple


_ManipulatorInfoBase = namedtuple(
    '_ManipulatorInfoBase', ['manipulator', 'tcp_frame', 'working_frame'])


class ManipulatorInfo(_ManipulatorInfoBase):
    """Identity of the kinematic group and tool used by an instruction.

    Parameters
    ----------
    manipulator : str
        name of the kinematic group.
    tcp_frame : str
        link whose pose is targeted by cartesian waypoints.
    working_frame : str
        frame cartesian waypoints are expressed in.

    Examples
    --------
    >>> from skmotion.command import ManipulatorInfo
    >>> base = ManipulatorInfo('manipulator', 'tool0')
    >>> ManipulatorInfo('', 'flange').get_combined(base).manipulator
    'manipulator'
    """

    __slots__ = ()

    def __new__(cls, manipulator='', tcp_frame='', working_frame='base_link'):
        return super(ManipulatorInfo, cls).__new__(
            cls, manipulator, tcp_frame, working_frame)

    def empty(self):
        return not (self.manipulator or self.tcp_frame or self.working_frame)

    def get_combined(self, other):
        """Return info with empty fields filled from other."""
        if other is None:
            return self
        return ManipulatorInfo(
            self.manipulator or other.manipulator,
            self.tcp_frame or other.tcp_frame,
            self.working_frame or other.working_frame)

    def __repr__(self):
        return ('ManipulatorInfo(manipulator={!r}, tcp_frame={!r}, '
                'working_frame={!r})'.format(
                    self.manipulator, self.tcp_frame, self.working_frame))
