"""Profiles configuring how instructions become planning problems.

A profile is a plain object whose constructor keyword arguments are its
settings. Profiles can be persisted to XML and restored:

>>> from skmotion.planner.sqp_based import SQPSolverProfile
>>> profile = SQPSolverProfile(max_iter=20)
>>> restored = SQPSolverProfile.from_xml_string(profile.to_xml_string())
>>> restored == profile
True
"""

from abc import ABC
from abc import abstractmethod
import importlib
import inspect
from logging import getLogger
import threading

from lxml import etree
import numpy as np

from skmotion.command.instruction import DEFAULT_PROFILE
from skmotion.planner.core.errors import ConfigurationError
from skmotion.planner.core.errors import ProfileNotFoundError


logger = getLogger(__name__)

_PROFILE_CLASSES = {}


def _encode_value(element, value):
    if isinstance(value, Profile):
        element.set('type', 'profile')
        element.append(value.to_xml())
    elif value is None:
        element.set('type', 'none')
    elif isinstance(value, (bool, np.bool_)):
        element.set('type', 'bool')
        element.text = 'true' if value else 'false'
    elif isinstance(value, (int, np.integer)):
        element.set('type', 'int')
        element.text = str(int(value))
    elif isinstance(value, (float, np.floating)):
        element.set('type', 'float')
        element.text = repr(float(value))
    elif isinstance(value, str):
        element.set('type', 'str')
        element.text = value
    elif isinstance(value, np.ndarray):
        element.set('type', 'array')
        element.set('shape', ' '.join(str(s) for s in value.shape))
        element.text = ' '.join(repr(float(v)) for v in value.ravel())
    elif isinstance(value, (list, tuple)):
        element.set('type', 'list' if isinstance(value, list) else 'tuple')
        for item in value:
            _encode_value(etree.SubElement(element, 'item'), item)
    elif isinstance(value, dict):
        element.set('type', 'dict')
        for key, item in value.items():
            child = etree.SubElement(element, 'item', key=str(key))
            _encode_value(child, item)
    else:
        raise TypeError(
            'Cannot serialize value of type {}'.format(type(value)))


def _decode_value(element):
    value_type = element.get('type')
    text = element.text or ''
    if value_type == 'profile':
        return Profile.from_xml(element[0])
    if value_type == 'none':
        return None
    if value_type == 'bool':
        return text.strip() == 'true'
    if value_type == 'int':
        return int(text)
    if value_type == 'float':
        return float(text)
    if value_type == 'str':
        return text
    if value_type == 'array':
        shape = tuple(int(s) for s in element.get('shape').split())
        values = [float(v) for v in text.split()]
        return np.array(values, dtype=np.float64).reshape(shape)
    if value_type == 'list':
        return [_decode_value(child) for child in element]
    if value_type == 'tuple':
        return tuple(_decode_value(child) for child in element)
    if value_type == 'dict':
        return {child.get('key'): _decode_value(child) for child in element}
    raise ConfigurationError('Unknown value type {}'.format(value_type))


def _is_callable_setting(value):
    if isinstance(value, (list, tuple)):
        return any(_is_callable_setting(v) for v in value)
    return callable(value) and not isinstance(value, Profile)


def _values_equal(a, b):
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        return np.array_equal(np.asarray(a), np.asarray(b))
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(
            _values_equal(x, y) for x, y in zip(a, b))
    return a == b


class Profile(ABC):
    """Base class of all profiles.

    Subclasses are registered by class name so that persisted profiles
    restore to instances of the same class. Settings are the
    constructor keyword arguments and must be stored as attributes of
    the same name.

    Profiles hold no state of a particular solve and may be shared by
    concurrently running planners.
    """

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        _PROFILE_CLASSES[cls.__name__] = cls

    @classmethod
    def _param_names(cls):
        signature = inspect.signature(cls.__init__)
        return [name for name, p in signature.parameters.items()
                if name != 'self' and p.kind in (
                    p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)]

    def get_params(self):
        """Return settings as a dict of constructor keyword arguments."""
        return {name: getattr(self, name) for name in self._param_names()}

    def to_xml(self):
        """Serialize profile to an lxml element.

        Callable settings cannot be persisted and are omitted; they
        restore to their default value.
        """
        cls = self.__class__
        element = etree.Element('Profile', type=cls.__name__,
                                module=cls.__module__)
        for name, value in self.get_params().items():
            if _is_callable_setting(value):
                logger.warning(
                    'Callable setting %s of %s is not persisted',
                    name, cls.__name__)
                continue
            _encode_value(etree.SubElement(element, 'param', name=name),
                          value)
        return element

    @classmethod
    def from_xml(cls, element):
        """Restore a profile from an lxml element.

        Raises
        ------
        ConfigurationError
            If the element does not describe a known profile class or
            the class is not a subclass of cls.
        """
        if element.tag != 'Profile':
            raise ConfigurationError(
                'Expected <Profile> element, got <{}>'.format(element.tag))
        type_name = element.get('type')
        profile_cls = _PROFILE_CLASSES.get(type_name)
        module = element.get('module')
        if profile_cls is None and module:
            if not module.startswith('skmotion.'):
                raise ConfigurationError(
                    'Profile {} names module {} outside skmotion'.format(
                        type_name, module))
            try:
                importlib.import_module(module)
            except ImportError as e:
                raise ConfigurationError(
                    'Cannot import module of profile {}: {}'.format(
                        type_name, e))
            profile_cls = _PROFILE_CLASSES.get(type_name)
        if profile_cls is None:
            raise ConfigurationError(
                'Unknown profile type {}'.format(type_name))
        if not issubclass(profile_cls, cls):
            raise ConfigurationError(
                'Profile type {} is not a {}'.format(type_name, cls.__name__))
        params = {child.get('name'): _decode_value(child)
                  for child in element if child.tag == 'param'}
        unknown = set(params) - set(profile_cls._param_names())
        if unknown:
            raise ConfigurationError(
                'Unknown settings {} for profile {}'.format(
                    sorted(unknown), type_name))
        try:
            return profile_cls(**params)
        except ValueError as e:
            raise ConfigurationError(
                'Invalid settings for profile {}: {}'.format(type_name, e))

    def to_xml_string(self, pretty_print=True):
        return etree.tostring(self.to_xml(), pretty_print=pretty_print,
                              encoding='unicode')

    @classmethod
    def from_xml_string(cls, text):
        parser = etree.XMLParser(remove_blank_text=True,
                                 resolve_entities=False)
        return cls.from_xml(etree.fromstring(text, parser))

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        a = self.get_params()
        b = other.get_params()
        return all(_values_equal(a[k], b[k]) for k in a)

    def __repr__(self):
        params = ', '.join('{}={!r}'.format(k, v)
                           for k, v in self.get_params().items())
        return '{}({})'.format(self.__class__.__name__, params)


class PlanProfile(Profile):
    """Per waypoint profile.

    Joint and cartesian waypoints are handled by separate entry points.
    Use :func:`skmotion.planner.core.utils.apply_waypoint_profile` to
    dispatch on the waypoint type.
    """

    @abstractmethod
    def apply_cartesian(self, problem, waypoint, parent_instruction,
                        manipulator_info, context, index):
        """Add the terms of a cartesian waypoint to problem.

        Parameters
        ----------
        problem : object
            backend native problem under construction.
        waypoint : skmotion.command.CartesianWaypoint
            target pose.
        parent_instruction : skmotion.command.MoveInstruction
            instruction holding the waypoint.
        manipulator_info : skmotion.command.ManipulatorInfo
            effective manipulator info of the instruction.
        context : skmotion.planner.core.types.PlanningContext
            per solve handles.
        index : int
            step index of the waypoint in problem.
        """

    @abstractmethod
    def apply_joint(self, problem, waypoint, parent_instruction,
                    manipulator_info, context, index):
        """Add the terms of a joint waypoint to problem."""


class CompositeProfile(Profile):
    """Profile applied to the steps of a composite instruction."""

    @abstractmethod
    def apply(self, problem, start_index, end_index, manipulator_info,
              active_links, fixed_indices, context):
        """Add terms covering steps start_index to end_index.

        Parameters
        ----------
        problem : object
            backend native problem under construction.
        start_index : int
            first step of the range.
        end_index : int
            last step of the range, inclusive.
        manipulator_info : skmotion.command.ManipulatorInfo
            manipulator info of the composite.
        active_links : list[str]
            links moved by the manipulator.
        fixed_indices : list[int]
            steps whose joint values are fixed.
        context : skmotion.planner.core.types.PlanningContext
            per solve handles.
        """


class SolverProfile(Profile):
    """Profile configuring solver parameters of a problem."""

    @abstractmethod
    def apply(self, problem, context):
        pass


class ProfileDictionary(object):
    """Registry of profiles by namespace and name.

    Examples
    --------
    >>> from skmotion.planner.core.profile import ProfileDictionary
    >>> from skmotion.planner.sqp_based import SQPSolverProfile
    >>> profiles = ProfileDictionary()
    >>> profiles.add_profile('sqp_solver', 'FAST', SQPSolverProfile(max_iter=10))
    >>> profiles.has_profile('sqp_solver', 'FAST')
    True
    """

    def __init__(self):
        self._profiles = {}
        self._lock = threading.RLock()

    def add_profile(self, namespace, name, profile):
        if not namespace:
            raise ValueError('Profile namespace must not be empty')
        if not isinstance(profile, Profile):
            raise TypeError(
                'profile must be a Profile, got {}'.format(type(profile)))
        name = name or DEFAULT_PROFILE
        with self._lock:
            self._profiles.setdefault(namespace, {})[name] = profile

    def has_profile(self, namespace, name):
        name = name or DEFAULT_PROFILE
        with self._lock:
            return name in self._profiles.get(namespace, {})

    def get_profile(self, namespace, name):
        """Return a registered profile.

        Raises
        ------
        ProfileNotFoundError
            If no profile is registered under namespace and name.
        """
        name = name or DEFAULT_PROFILE
        with self._lock:
            try:
                return self._profiles[namespace][name]
            except KeyError:
                raise ProfileNotFoundError(namespace, name)

    def remove_profile(self, namespace, name):
        name = name or DEFAULT_PROFILE
        with self._lock:
            profiles = self._profiles.get(namespace, {})
            profiles.pop(name, None)
            if not profiles:
                self._profiles.pop(namespace, None)

    def get_profiles(self, namespace):
        with self._lock:
            return dict(self._profiles.get(namespace, {}))

    def get_namespaces(self):
        with self._lock:
            return list(self._profiles.keys())

    def to_xml(self):
        root = etree.Element('ProfileDictionary')
        with self._lock:
            for namespace, profiles in self._profiles.items():
                ns_element = etree.SubElement(root, 'Namespace',
                                              name=namespace)
                for name, profile in profiles.items():
                    entry = etree.SubElement(ns_element, 'Entry', name=name)
                    entry.append(profile.to_xml())
        return root

    @classmethod
    def from_xml(cls, element):
        if element.tag != 'ProfileDictionary':
            raise ConfigurationError(
                'Expected <ProfileDictionary> element, got <{}>'.format(
                    element.tag))
        profiles = cls()
        for ns_element in element.iterchildren('Namespace'):
            for entry in ns_element.iterchildren('Entry'):
                profiles.add_profile(ns_element.get('name'),
                                     entry.get('name'),
                                     Profile.from_xml(entry[0]))
        return profiles

    def to_xml_string(self, pretty_print=True):
        return etree.tostring(self.to_xml(), pretty_print=pretty_print,
                              encoding='unicode')

    @classmethod
    def from_xml_string(cls, text):
        parser = etree.XMLParser(remove_blank_text=True,
                                 resolve_entities=False)
        return cls.from_xml(etree.fromstring(text, parser))

    def __repr__(self):
        with self._lock:
            counts = {ns: len(p) for ns, p in self._profiles.items()}
        return '<ProfileDictionary {}>'.format(counts)
