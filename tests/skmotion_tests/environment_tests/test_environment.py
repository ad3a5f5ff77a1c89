import unittest

import numpy as np
from numpy import testing

from skmotion.collision import Sphere
from skmotion.environment import Environment
from skmotion.environment import EnvironmentLockedError
from skmotion.environment import Joint
from skmotion.environment import Link
from skmotion.models import IIWA14_JOINT_NAMES
from skmotion.models import iiwa14_environment


class TestEnvironment(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.env = iiwa14_environment()

    def test_iiwa14(self):
        env = iiwa14_environment()
        self.assertEqual(env.get_joint_names(), IIWA14_JOINT_NAMES)
        self.assertTrue(env.has_kinematic_group('manipulator'))
        self.assertEqual(env.get_group_names(), ['manipulator'])
        self.assertTrue(env.has_link('tool0'))
        self.assertEqual(env.get_current_state(),
                         {name: 0.0 for name in IIWA14_JOINT_NAMES})

    def test_add_link(self):
        env = Environment()
        env.add_link(Link('link_1'),
                     Joint('joint_1', 'base_link', 'link_1',
                           joint_type='revolute', min_angle=0.5,
                           max_angle=1.0))
        self.assertEqual(env.get_joint_names(), ['joint_1'])
        # initial position is clipped into limits
        self.assertEqual(env.get_current_state(), {'joint_1': 0.5})

        with self.assertRaises(ValueError):
            env.add_link(Link('link_1'))
        with self.assertRaises(ValueError):
            env.add_link(Link('link_2'),
                         Joint('joint_2', 'missing', 'link_2'))
        with self.assertRaises(ValueError):
            env.add_link(Link('link_2'),
                         Joint('joint_2', 'base_link', 'link_3'))
        with self.assertRaises(ValueError):
            Joint('joint_2', 'base_link', 'link_2', joint_type='ball')
        with self.assertRaises(ValueError):
            Link('')

    def test_obstacles(self):
        env = Environment()
        env.add_sphere('sphere', 0.1, [1, 0, 0])
        env.add_box('box', [0.2, 0.2, 0.2], [0, 1, 0])
        env.add_point_cloud('cloud', [[0, 0, 1], [0, 0, 2]], radius=0.01)
        transforms = env.get_state_solver().get_state()
        testing.assert_array_almost_equal(transforms['sphere'][:3, 3],
                                          [1, 0, 0])
        testing.assert_array_almost_equal(transforms['box'][:3, 3],
                                          [0, 1, 0])

        manager = env.get_discrete_contact_manager()
        self.assertEqual(sorted(manager.get_collision_object_names()),
                         ['box', 'cloud', 'sphere'])
        pairs, distances = manager.distance_vector()
        distances = dict(zip(pairs, distances))
        testing.assert_almost_equal(distances[('sphere', 'box')],
                                    np.sqrt(2 * 0.9 ** 2) - 0.1,
                                    decimal=5)

        with self.assertRaises(KeyError):
            env.add_collision_geometry(
                'missing', Sphere.from_center_and_radius([0, 0, 0], 0.1))

    def test_remove_link(self):
        env = iiwa14_environment()
        env.add_sphere('attached', 0.05, [0, 0, 0.1], parent_link='tool0')
        env.remove_link('link_6')
        self.assertFalse(env.has_link('link_7'))
        self.assertFalse(env.has_link('tool0'))
        self.assertFalse(env.has_link('attached'))
        self.assertEqual(env.get_joint_names(), IIWA14_JOINT_NAMES[:5])
        # groups through removed links are removed
        self.assertFalse(env.has_kinematic_group('manipulator'))

        with self.assertRaises(ValueError):
            env.remove_link('base_link')
        with self.assertRaises(KeyError):
            env.remove_link('link_6')

    def test_set_state(self):
        env = iiwa14_environment()
        env.set_state(['joint_a1', 'joint_a2'], [0.1, 0.2])
        env.set_state({'joint_a3': 0.3})
        state = env.get_current_state()
        testing.assert_almost_equal(state['joint_a1'], 0.1)
        testing.assert_almost_equal(state['joint_a3'], 0.3)
        testing.assert_almost_equal(state['joint_a4'], 0.0)

        with self.assertRaises(KeyError):
            env.set_state({'unknown': 0.0})
        with self.assertRaises(ValueError):
            env.set_state(['joint_a1'], [0.0, 1.0])

    def test_snapshots(self):
        env = iiwa14_environment()
        solver = env.get_state_solver()
        group = env.get_kinematic_group('manipulator')
        env.set_state({'joint_a2': 0.5})
        # snapshots keep the state they were created with
        self.assertEqual(solver.get_current_state()['joint_a2'], 0.0)
        T = group.calc_fwd_kin(np.zeros(7))
        testing.assert_array_almost_equal(T[:3, 3], [0, 0, 1.306])

        solver.set_state({'joint_a1': 1.0})
        self.assertEqual(env.get_current_state()['joint_a1'], 0.0)
        cloned = solver.clone()
        cloned.set_state({'joint_a1': 0.0})
        self.assertEqual(solver.get_current_state()['joint_a1'], 1.0)

    def test_kinematic_group(self):
        with self.assertRaises(KeyError):
            self.env.get_kinematic_group('missing')

        env = iiwa14_environment()
        with self.assertRaises(ValueError):
            env.add_kinematic_group('bad', 'tool0', 'base_link')
        with self.assertRaises(ValueError):
            env.add_kinematic_group('bad', 'base_link', 'missing')

    def test_active_link_names(self):
        links = self.env.get_active_link_names(IIWA14_JOINT_NAMES)
        self.assertEqual(links,
                         ['link_{}'.format(i) for i in range(1, 8)]
                         + ['tool0'])
        self.assertEqual(
            self.env.get_active_link_names(['joint_a6']),
            ['link_6', 'link_7', 'tool0'])
        self.assertEqual(self.env.get_active_link_names(), links)
        with self.assertRaises(KeyError):
            self.env.get_active_link_names(['missing'])

    def test_allowed_collisions(self):
        env = iiwa14_environment()
        acm = env.get_allowed_collisions()
        self.assertTrue(acm.is_collision_allowed('link_1', 'base_link'))
        self.assertFalse(acm.is_collision_allowed('link_1', 'link_7'))

        env.add_allowed_collision('link_1', 'link_7', 'Never')
        manager = env.get_discrete_contact_manager()
        self.assertNotIn(('link_1', 'link_7'), manager.candidate_pairs())
        self.assertNotIn(('link_7', 'link_1'), manager.candidate_pairs())

        env.remove_allowed_collision('link_1', 'link_7')
        self.assertFalse(env.get_allowed_collisions().is_collision_allowed(
            'link_1', 'link_7'))
        # the home configuration is collision free
        self.assertFalse(env.get_discrete_contact_manager().in_collision())

    def test_solve_guard(self):
        env = iiwa14_environment()
        revision = env.revision
        self.assertFalse(env.is_locked)
        with env.solve_guard():
            self.assertTrue(env.is_locked)
            with self.assertRaises(EnvironmentLockedError):
                env.set_state({'joint_a1': 0.1})
            with self.assertRaises(EnvironmentLockedError):
                env.add_sphere('sphere', 0.1, [1, 0, 0])
            with env.solve_guard():
                self.assertTrue(env.is_locked)
            self.assertTrue(env.is_locked)
            # reading is allowed
            env.get_state_solver()
            env.get_kinematic_group('manipulator')
        self.assertFalse(env.is_locked)
        self.assertEqual(env.revision, revision)

        env.set_state({'joint_a1': 0.1})
        self.assertEqual(env.revision, revision + 1)
        env.add_sphere('sphere', 0.1, [1, 0, 0])
        self.assertEqual(env.revision, revision + 2)

    def test_continuous_contact_manager(self):
        env = iiwa14_environment()
        env.add_sphere('sphere', 0.1, [1, 0, 0])
        manager = env.get_continuous_contact_manager(motion_resolution=0.02)
        self.assertEqual(manager.motion_resolution, 0.02)
        self.assertTrue(manager.has_collision_object('sphere'))
