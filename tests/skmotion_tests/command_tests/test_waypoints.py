import unittest

import numpy as np
from numpy import testing

from skmotion.command import CartesianWaypoint
from skmotion.command import is_cartesian_waypoint
from skmotion.command import is_joint_waypoint
from skmotion.command import JointWaypoint
from skmotion.coordinates import Coordinates
from skmotion.planner.core.errors import JointNameMismatchError


class TestJointWaypoint(unittest.TestCase):

    def test_init(self):
        wp = JointWaypoint([0.1, 0.2], ['j1', 'j2'])
        testing.assert_array_equal(wp.positions, [0.1, 0.2])
        self.assertEqual(wp.joint_names, ['j1', 'j2'])
        self.assertEqual(len(wp), 2)
        self.assertTrue(is_joint_waypoint(wp))
        self.assertFalse(is_cartesian_waypoint(wp))

        with self.assertRaises(ValueError):
            JointWaypoint([0.1, 0.2], ['j1'])
        with self.assertRaises(ValueError):
            JointWaypoint([0.1, 0.2], ['j1', 'j1'])
        with self.assertRaises(ValueError):
            JointWaypoint([[0.1, 0.2]], ['j1', 'j2'])

    def test_immutable(self):
        positions = np.array([0.1, 0.2])
        wp = JointWaypoint(positions, ['j1', 'j2'])
        positions[0] = 1.0
        testing.assert_array_equal(wp.positions, [0.1, 0.2])
        with self.assertRaises(ValueError):
            wp.positions[0] = 1.0
        with self.assertRaises(AttributeError):
            wp.positions = np.zeros(2)

    def test_reordered(self):
        wp = JointWaypoint([0.1, 0.2, 0.3], ['j1', 'j2', 'j3'])
        testing.assert_array_equal(wp.reordered(['j3', 'j1', 'j2']),
                                   [0.3, 0.1, 0.2])
        with self.assertRaises(JointNameMismatchError):
            wp.reordered(['j1', 'j2'])
        with self.assertRaises(JointNameMismatchError):
            wp.reordered(['j1', 'j2', 'j4'])

    def test_eq(self):
        wp1 = JointWaypoint([0.1, 0.2], ['j1', 'j2'])
        wp2 = JointWaypoint([0.1, 0.2], ['j1', 'j2'])
        wp3 = JointWaypoint([0.2, 0.1], ['j2', 'j1'])
        self.assertEqual(wp1, wp2)
        self.assertEqual(hash(wp1), hash(wp2))
        self.assertNotEqual(wp1, wp3)
        self.assertEqual(len({wp1, wp2, wp3}), 2)


class TestCartesianWaypoint(unittest.TestCase):

    def test_init(self):
        pose = Coordinates(pos=[0.5, 0, 0.6], rot=[0, np.pi, 0])
        wp = CartesianWaypoint(pose)
        self.assertIs(wp.pose, pose)
        self.assertTrue(is_cartesian_waypoint(wp))
        testing.assert_array_almost_equal(wp.transform, pose.T())

        wp2 = CartesianWaypoint(pose.T())
        self.assertIsInstance(wp2.pose, Coordinates)
        testing.assert_array_almost_equal(wp2.transform, pose.T())

    def test_immutable(self):
        wp = CartesianWaypoint(np.eye(4))
        with self.assertRaises(AttributeError):
            wp.pose = Coordinates()

    def test_eq(self):
        wp1 = CartesianWaypoint(Coordinates(pos=[1, 0, 0]))
        wp2 = CartesianWaypoint(Coordinates(pos=[1, 0, 0]))
        self.assertEqual(wp1, wp2)
        self.assertEqual(hash(wp1), hash(wp2))
        self.assertNotEqual(wp1, CartesianWaypoint(Coordinates()))
        self.assertNotEqual(wp1, JointWaypoint([1.0], ['j1']))
