import numpy as np

from skmotion.collision.geometry import Capsule
from skmotion.coordinates.math import make_transform
from skmotion.environment.environment import Environment
from skmotion.environment.scene_graph import Joint
from skmotion.environment.scene_graph import Link


IIWA14_JOINT_NAMES = ['joint_a{}'.format(i) for i in range(1, 8)]

# (joint offset along parent z, axis, limit, max velocity in deg/s)
_IIWA14_JOINTS = [
    (0.1575, 'z', 2.9671, 85),
    (0.2025, 'y', 2.0944, 85),
    (0.2045, 'z', 2.9671, 100),
    (0.2155, '-y', 2.0944, 75),
    (0.1845, 'z', 2.9671, 130),
    (0.2155, 'y', 2.0944, 135),
    (0.081, 'z', 3.0543, 135),
]

_IIWA14_CAPSULES = {
    'base_link': ([0, 0, 0], [0, 0, 0.2], 0.07),
    'link_3': ([0, 0, -0.15], [0, 0, 0.17], 0.06),
    'link_5': ([0, 0, -0.14], [0, 0, 0.17], 0.05),
    'link_7': ([0, 0, -0.03], [0, 0, 0.06], 0.04),
}


def iiwa14_environment(name='iiwa14', group_name='manipulator',
                       tcp_frame='tool0'):
    """Create an environment holding a 7 joint iiwa14 style arm.

    Links are approximated by capsules. Neighbouring capsules which
    always overlap are registered as allowed collisions.

    Parameters
    ----------
    name : str
        environment name.
    group_name : str
        name of the kinematic group from base_link to the tcp frame.
    tcp_frame : str
        name of the tool frame link.

    Returns
    -------
    env : skmotion.environment.Environment
        environment with all joints at zero.
    """
    env = Environment(root_link='base_link', name=name)
    env.add_collision_geometry(
        'base_link', Capsule.from_endpoints(*_IIWA14_CAPSULES['base_link']))

    parent = 'base_link'
    for i, (offset, axis, limit, velocity) in enumerate(_IIWA14_JOINTS):
        link_name = 'link_{}'.format(i + 1)
        geometries = []
        if link_name in _IIWA14_CAPSULES:
            geometries.append(
                Capsule.from_endpoints(*_IIWA14_CAPSULES[link_name]))
        env.add_link(
            Link(link_name, geometries),
            Joint(IIWA14_JOINT_NAMES[i], parent, link_name,
                  joint_type='revolute',
                  origin=make_transform(pos=[0, 0, offset]),
                  axis=axis, min_angle=-limit, max_angle=limit,
                  max_joint_velocity=np.deg2rad(velocity)))
        parent = link_name
    env.add_link(Link(tcp_frame),
                 Joint('joint_a7-tool0', parent, tcp_frame,
                       origin=make_transform(pos=[0, 0, 0.045])))

    link_names = ['base_link'] + ['link_{}'.format(i) for i in range(1, 8)]
    for link1, link2 in zip(link_names[:-1], link_names[1:]):
        env.add_allowed_collision(link1, link2, 'Adjacent')
    env.add_allowed_collision('link_3', 'link_5', 'Never')
    env.add_allowed_collision('link_5', 'link_7', 'Never')
    env.add_kinematic_group(group_name, 'base_link', tcp_frame)
    return env
