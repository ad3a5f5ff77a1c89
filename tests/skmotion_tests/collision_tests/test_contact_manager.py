import unittest

import numpy as np
from numpy import testing

from skmotion.collision import AllowedCollisionMatrix
from skmotion.collision import ContinuousContactManager
from skmotion.collision import DiscreteContactManager
from skmotion.collision import Sphere


def translation(x, y=0.0, z=0.0):
    T = np.eye(4)
    T[:3, 3] = [x, y, z]
    return T


def sphere(radius=0.1):
    return Sphere.from_center_and_radius([0, 0, 0], radius)


class TestDiscreteContactManager(unittest.TestCase):

    def setUp(self):
        self.manager = DiscreteContactManager()
        self.manager.add_collision_object('a', [sphere()])
        self.manager.add_collision_object('b', [sphere()], translation(0.5))
        self.manager.add_collision_object('c', [sphere()], translation(1.0))

    def test_candidate_pairs(self):
        self.assertEqual(self.manager.candidate_pairs(),
                         [('a', 'b'), ('a', 'c'), ('b', 'c')])

        self.manager.set_active_collision_objects(['a'])
        self.assertEqual(self.manager.candidate_pairs(),
                         [('a', 'b'), ('a', 'c')])

        # unknown names are ignored
        self.manager.set_active_collision_objects(['a', 'unknown'])
        self.assertEqual(self.manager.get_active_collision_objects(), ['a'])

        self.manager.disable_collision_object('b')
        self.assertEqual(self.manager.candidate_pairs(), [('a', 'c')])
        self.manager.enable_collision_object('b')
        self.assertEqual(len(self.manager.candidate_pairs()), 2)

    def test_allowed_collisions(self):
        acm = AllowedCollisionMatrix()
        acm.add_allowed_collision('b', 'a', 'Adjacent')
        self.assertTrue(acm.is_collision_allowed('a', 'b'))
        self.assertEqual(len(acm), 1)

        self.manager.set_allowed_collisions(acm)
        self.assertNotIn(('a', 'b'), self.manager.candidate_pairs())

        acm.remove_allowed_collision('a', 'b')
        self.assertFalse(acm.is_collision_allowed('a', 'b'))

    def test_distance_vector(self):
        pairs, distances = self.manager.distance_vector()
        self.assertEqual(len(pairs), len(distances))
        testing.assert_array_almost_equal(distances, [0.3, 0.8, 0.3])

        self.manager.set_collision_objects_transform('b', translation(0.1))
        _, distances = self.manager.distance_vector()
        testing.assert_array_almost_equal(distances, [-0.1, 0.8, 0.7])

        # objects without a collision object are ignored
        self.manager.set_collision_objects_transform(
            {'c': translation(0.0, 1.0), 'missing': np.eye(4)})
        _, distances = self.manager.distance_vector()
        testing.assert_almost_equal(distances[1], 0.8)

    def test_contact_test(self):
        self.assertEqual(self.manager.contact_test(), [])
        self.assertFalse(self.manager.in_collision())

        self.manager.set_contact_distance_threshold(0.5)
        contacts = self.manager.contact_test()
        self.assertEqual(len(contacts), 2)
        for contact in contacts:
            self.assertLess(contact.distance, 0.5)
            self.assertEqual(contact.cc_time, -1.0)

        self.manager.set_contact_distance_threshold(0.0)
        self.manager.set_collision_objects_transform('c', translation(0.55))
        contacts = self.manager.contact_test()
        self.assertEqual(len(contacts), 1)
        self.assertEqual(contacts[0].link_names, ('b', 'c'))
        testing.assert_almost_equal(contacts[0].distance, -0.15)
        self.assertTrue(self.manager.in_collision())

    def test_remove_collision_object(self):
        self.manager.set_active_collision_objects(['a', 'b'])
        self.assertTrue(self.manager.remove_collision_object('b'))
        self.assertFalse(self.manager.remove_collision_object('b'))
        self.assertFalse(self.manager.has_collision_object('b'))
        self.assertEqual(self.manager.get_active_collision_objects(), ['a'])
        self.assertEqual(self.manager.candidate_pairs(), [('a', 'c')])

    def test_clone(self):
        cloned = self.manager.clone()
        cloned.set_collision_objects_transform('b', translation(0.0))
        cloned.set_active_collision_objects(['b'])

        _, distances = self.manager.distance_vector()
        testing.assert_array_almost_equal(distances, [0.3, 0.8, 0.3])
        self.assertEqual(len(self.manager.candidate_pairs()), 3)
        self.assertTrue(cloned.in_collision())
        self.assertFalse(self.manager.in_collision())


class TestContinuousContactManager(unittest.TestCase):

    def setUp(self):
        self.manager = ContinuousContactManager(motion_resolution=0.05)
        self.manager.add_collision_object('moving', [sphere()])
        self.manager.add_collision_object(
            'obstacle', [sphere()], translation(0.5))
        self.manager.set_active_collision_objects(['moving'])

    def test_invalid_resolution(self):
        with self.assertRaises(ValueError):
            ContinuousContactManager(motion_resolution=0.0)

    def test_contact_test_motion(self):
        # both end points are free, the swept motion is not
        contacts = self.manager.contact_test_motion(
            {'moving': translation(0.0)}, {'moving': translation(1.0)})
        self.assertEqual(len(contacts), 1)
        contact = contacts[0]
        self.assertEqual(contact.link_names, ('moving', 'obstacle'))
        testing.assert_almost_equal(contact.distance, -0.2)
        testing.assert_almost_equal(contact.cc_time, 0.5)

    def test_free_motion(self):
        contacts = self.manager.contact_test_motion(
            {'moving': translation(0.0, 1.0)},
            {'moving': translation(1.0, 1.0)})
        self.assertEqual(contacts, [])
