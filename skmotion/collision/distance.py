"""Signed distances between collision primitives.

Positive values are clearances and negative values are penetration
depths. Pairs are looked up by their types in both orders.
"""

import numpy as np

from skmotion.collision.geometry import Box
from skmotion.collision.geometry import Capsule
from skmotion.collision.geometry import HalfSpace
from skmotion.collision.geometry import PointCloud
from skmotion.collision.geometry import Sphere


def closest_point_on_segment(p1, p2, target):
    """Return the point of segment p1-p2 closest to target."""
    segment = p2 - p1
    seg_len_sq = np.dot(segment, segment)
    if seg_len_sq < 1e-12:
        return p1.copy()
    t = np.clip(np.dot(target - p1, segment) / seg_len_sq, 0.0, 1.0)
    return p1 + t * segment


def closest_points_segment_segment(p1, q1, p2, q2):
    """Return closest points between segments p1-q1 and p2-q2.

    Returns
    -------
    closest1, closest2 : numpy.ndarray
        Closest point on each segment.
    """
    d1 = q1 - p1
    d2 = q2 - p2
    r = p1 - p2
    a = np.dot(d1, d1)
    e = np.dot(d2, d2)
    f = np.dot(d2, r)
    eps = 1e-12
    if a <= eps and e <= eps:
        return p1.copy(), p2.copy()
    if a <= eps:
        s = 0.0
        t = np.clip(f / e, 0.0, 1.0)
    else:
        c = np.dot(d1, r)
        if e <= eps:
            t = 0.0
            s = np.clip(-c / a, 0.0, 1.0)
        else:
            b = np.dot(d1, d2)
            denom = a * e - b * b
            # parallel segments: pick an arbitrary s
            s = np.clip((b * f - c * e) / denom, 0.0, 1.0) \
                if denom > eps else 0.0
            t = (b * s + f) / e
            if t < 0.0:
                t = 0.0
                s = np.clip(-c / a, 0.0, 1.0)
            elif t > 1.0:
                t = 1.0
                s = np.clip((b - c) / a, 0.0, 1.0)
    return p1 + s * d1, p2 + t * d2


def sphere_sphere_distance(s1, s2):
    return float(np.linalg.norm(s1.center - s2.center)
                 - s1.radius - s2.radius)


def capsule_capsule_distance(c1, c2):
    closest1, closest2 = closest_points_segment_segment(
        c1.p1, c1.p2, c2.p1, c2.p2)
    return float(np.linalg.norm(closest1 - closest2)
                 - c1.radius - c2.radius)


def sphere_capsule_distance(sphere, capsule):
    closest = closest_point_on_segment(capsule.p1, capsule.p2, sphere.center)
    return float(np.linalg.norm(sphere.center - closest)
                 - sphere.radius - capsule.radius)


def _to_box_frame(box, point):
    local = point - box.center
    if box.rotation is not None:
        local = np.matmul(box.rotation.T, local)
    return local


def _point_box_sdf(box, local_point):
    closest = np.clip(local_point, -box.half_extents, box.half_extents)
    dist_to_surface = np.linalg.norm(local_point - closest)
    if dist_to_surface > 1e-9:
        return dist_to_surface
    # inside: negative distance to the nearest face
    return -float(np.min(box.half_extents - np.abs(local_point)))


def sphere_box_distance(sphere, box):
    local_center = _to_box_frame(box, sphere.center)
    return float(_point_box_sdf(box, local_center) - sphere.radius)


def capsule_box_distance(capsule, box):
    """Signed distance of a capsule to a box.

    Uses two steps of closest point refinement between the capsule
    segment and the box.
    """
    p1_local = _to_box_frame(box, capsule.p1)
    p2_local = _to_box_frame(box, capsule.p2)

    pt_seg = closest_point_on_segment(p1_local, p2_local, np.zeros(3))
    pt_box = np.clip(pt_seg, -box.half_extents, box.half_extents)
    pt_seg = closest_point_on_segment(p1_local, p2_local, pt_box)

    candidates = [_point_box_sdf(box, p)
                  for p in (pt_seg, p1_local, p2_local)]
    return float(min(candidates) - capsule.radius)


def sphere_halfspace_distance(sphere, halfspace):
    return float(np.dot(sphere.center - halfspace.point, halfspace.normal)
                 - sphere.radius)


def capsule_halfspace_distance(capsule, halfspace):
    d1 = np.dot(capsule.p1 - halfspace.point, halfspace.normal)
    d2 = np.dot(capsule.p2 - halfspace.point, halfspace.normal)
    return float(min(d1, d2) - capsule.radius)


def box_halfspace_distance(box, halfspace):
    rotation = box.rotation if box.rotation is not None else np.eye(3)
    signs = np.array([[sx, sy, sz]
                      for sx in (-1, 1) for sy in (-1, 1) for sz in (-1, 1)])
    corners = box.center + np.matmul(signs * box.half_extents, rotation.T)
    return float(np.min(np.dot(corners - halfspace.point, halfspace.normal)))


def point_cloud_distance(cloud, geom):
    """Smallest distance of the inflated points to geom."""
    return min(collision_distance(Sphere(center=p, radius=cloud.radius), geom)
               for p in cloud.points)


_PAIR_DISTANCES = {
    (Sphere, Sphere): sphere_sphere_distance,
    (Capsule, Capsule): capsule_capsule_distance,
    (Sphere, Capsule): sphere_capsule_distance,
    (Sphere, Box): sphere_box_distance,
    (Capsule, Box): capsule_box_distance,
    (Sphere, HalfSpace): sphere_halfspace_distance,
    (Capsule, HalfSpace): capsule_halfspace_distance,
    (Box, HalfSpace): box_halfspace_distance,
}


def collision_distance(geom1, geom2):
    """Return the signed distance between two geometries.

    Parameters
    ----------
    geom1, geom2 : CollisionGeometry
        geometries in the same frame.

    Returns
    -------
    distance : float
        clearance, negative when the geometries overlap.

    Raises
    ------
    NotImplementedError
        If no distance function handles the pair, e.g. box and box.
    """
    if isinstance(geom1, PointCloud):
        return point_cloud_distance(geom1, geom2)
    if isinstance(geom2, PointCloud):
        return point_cloud_distance(geom2, geom1)
    function = _PAIR_DISTANCES.get((type(geom1), type(geom2)))
    if function is not None:
        return function(geom1, geom2)
    function = _PAIR_DISTANCES.get((type(geom2), type(geom1)))
    if function is not None:
        return function(geom2, geom1)
    raise NotImplementedError(
        'No distance function for {} and {}'.format(
            type(geom1).__name__, type(geom2).__name__))
