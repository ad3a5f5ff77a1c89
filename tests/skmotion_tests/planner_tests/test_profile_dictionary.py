import unittest
from unittest import mock

import numpy as np
from numpy import testing

from skmotion.planner.core.errors import ConfigurationError
from skmotion.planner.core.errors import ProfileNotFoundError
from skmotion.planner.core.profile import Profile
from skmotion.planner.core.profile import ProfileDictionary
from skmotion.planner.graph_based import GraphPlanProfile
from skmotion.planner.sampling_based import ESTConfigurator
from skmotion.planner.sampling_based import RRTConfigurator
from skmotion.planner.sampling_based import RRTConnectConfigurator
from skmotion.planner.sampling_based import SamplingPlanProfile
from skmotion.planner.sampling_based import UprightConstraint
from skmotion.planner.sampling_based.constraint import PoseConstraint
from skmotion.planner.sampling_based.planners import PlannerConfigurator
from skmotion.planner.sqp_based import SQPCompositeProfile
from skmotion.planner.sqp_based import SQPPlanProfile
from skmotion.planner.sqp_based import SQPSolverProfile


class TestProfileDictionary(unittest.TestCase):

    def test_registry(self):
        profiles = ProfileDictionary()
        fast = SQPSolverProfile(max_iter=10)
        profiles.add_profile('sqp_solver', 'FAST', fast)
        profiles.add_profile('sqp_solver', '', SQPSolverProfile())
        self.assertTrue(profiles.has_profile('sqp_solver', 'FAST'))
        self.assertTrue(profiles.has_profile('sqp_solver', 'DEFAULT'))
        self.assertFalse(profiles.has_profile('sqp_plan', 'FAST'))
        self.assertIs(profiles.get_profile('sqp_solver', 'FAST'), fast)
        self.assertEqual(sorted(profiles.get_profiles('sqp_solver')),
                         ['DEFAULT', 'FAST'])
        self.assertEqual(profiles.get_namespaces(), ['sqp_solver'])

        profiles.remove_profile('sqp_solver', 'FAST')
        self.assertFalse(profiles.has_profile('sqp_solver', 'FAST'))
        profiles.remove_profile('sqp_solver', 'DEFAULT')
        self.assertEqual(profiles.get_namespaces(), [])

    def test_profile_not_found(self):
        profiles = ProfileDictionary()
        with self.assertRaises(ProfileNotFoundError) as cm:
            profiles.get_profile('sqp_plan', 'MISSING')
        self.assertEqual(cm.exception.namespace, 'sqp_plan')
        self.assertEqual(cm.exception.name, 'MISSING')
        self.assertIsInstance(cm.exception, ConfigurationError)
        self.assertIsInstance(cm.exception, ValueError)

    def test_invalid_profile(self):
        profiles = ProfileDictionary()
        with self.assertRaises(TypeError):
            profiles.add_profile('sqp_plan', 'DEFAULT', object())
        with self.assertRaises(ValueError):
            profiles.add_profile('', 'DEFAULT', SQPPlanProfile())

    def test_xml_round_trip(self):
        profiles = ProfileDictionary()
        profiles.add_profile('sqp_plan', 'DEFAULT', SQPPlanProfile(
            cartesian_coeff=(5.0, 5.0, 5.0, 1.0, 1.0, 0.0),
            term_type='cost'))
        profiles.add_profile('sqp_composite', 'DEFAULT', SQPCompositeProfile(
            collision_mode='continuous', jerk_coeff=0.5,
            constraint=UprightConstraint(tolerance=0.1)))
        profiles.add_profile('sqp_solver', 'DEFAULT', SQPSolverProfile())
        profiles.add_profile('sampling_plan', 'DEFAULT', SamplingPlanProfile(
            planning_time=2.0, random_seed=3,
            configurators=[RRTConnectConfigurator(range=0.3),
                           RRTConfigurator(goal_bias=0.1),
                           ESTConfigurator()]))
        profiles.add_profile('graph_plan', 'DEFAULT', GraphPlanProfile(
            n_rotation_samples=5, max_step=0.5))

        text = profiles.to_xml_string()
        restored = ProfileDictionary.from_xml_string(text)
        self.assertEqual(sorted(restored.get_namespaces()),
                         sorted(profiles.get_namespaces()))
        for namespace in profiles.get_namespaces():
            for name, profile in profiles.get_profiles(namespace).items():
                self.assertEqual(restored.get_profile(namespace, name),
                                 profile)

        solver = restored.get_profile('sqp_solver', 'DEFAULT')
        self.assertEqual(solver.max_time, np.inf)
        plan = restored.get_profile('sqp_plan', 'DEFAULT')
        self.assertIsInstance(plan.cartesian_coeff, tuple)
        sampling = restored.get_profile('sampling_plan', 'DEFAULT')
        self.assertIsInstance(sampling.configurators[2], ESTConfigurator)
        composite = restored.get_profile('sqp_composite', 'DEFAULT')
        testing.assert_array_almost_equal(composite.constraint.normal,
                                          [0, 0, -1])

    def test_callable_settings_are_not_persisted(self):
        profile = SamplingPlanProfile(
            state_validity_checker=lambda q: True)
        restored = SamplingPlanProfile.from_xml_string(
            profile.to_xml_string())
        self.assertIsNone(restored.state_validity_checker)

        profile = SQPCompositeProfile(
            cost_functions=[lambda q: q[:1]])
        restored = SQPCompositeProfile.from_xml_string(
            profile.to_xml_string())
        self.assertIsNone(restored.cost_functions)

    def test_unknown_profile_type(self):
        text = '<Profile type="MissingProfile" module=""/>'
        with self.assertRaises(ConfigurationError):
            Profile.from_xml_string(text)

        text = ('<Profile type="MissingProfile" '
                'module="skmotion.missing_module"/>')
        with self.assertRaises(ConfigurationError):
            Profile.from_xml_string(text)

        with self.assertRaises(ConfigurationError):
            Profile.from_xml_string('<Other/>')

    def test_foreign_profile_module(self):
        text = ('<Profile type="SiteProfile" '
                'module="site_profiles.plan"/>')
        with mock.patch('importlib.import_module') as import_module:
            with self.assertRaises(ConfigurationError):
                Profile.from_xml_string(text)
        import_module.assert_not_called()

    def test_wrong_profile_class(self):
        text = SQPSolverProfile().to_xml_string()
        with self.assertRaises(ConfigurationError):
            SQPPlanProfile.from_xml_string(text)

    def test_unknown_setting(self):
        text = ('<Profile type="SQPSolverProfile">'
                '<param name="unknown" type="int">1</param></Profile>')
        with self.assertRaises(ConfigurationError):
            Profile.from_xml_string(text)

    def test_invalid_settings(self):
        with self.assertRaises(ValueError):
            SQPSolverProfile(max_iter=0)
        with self.assertRaises(ValueError):
            SQPSolverProfile(trust_shrink_ratio=1.5)
        with self.assertRaises(ValueError):
            SamplingPlanProfile(planning_time=0.0)
        with self.assertRaises(ValueError):
            SamplingPlanProfile(configurators=[])
        with self.assertRaises(ValueError):
            UprightConstraint(tolerance=0.0)

    def test_invalid_persisted_settings(self):
        text = ('<Profile type="SamplingPlanProfile">'
                '<param name="configurators" type="list"/></Profile>')
        with self.assertRaises(ConfigurationError):
            Profile.from_xml_string(text)

    def test_abstract_profiles(self):
        with self.assertRaises(TypeError):
            PlannerConfigurator()
        with self.assertRaises(TypeError):
            PoseConstraint()
