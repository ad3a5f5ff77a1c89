from logging import getLogger

import numpy as np


logger = getLogger(__name__)


def simplify_path(space, path, max_iterations=100):
    """Shorten a path by random shortcutting.

    The first and last states are kept.

    Parameters
    ----------
    space : PlanningSpace
        space checking the shortcut motions.
    path : list[numpy.ndarray]
        path to simplify.
    max_iterations : int
        shortcut attempts.

    Returns
    -------
    path : list[numpy.ndarray]
        simplified path.
    """
    simplified = list(path)
    rng = space.random_state
    for _ in range(max_iterations):
        if len(simplified) <= 2:
            break
        i = rng.randint(0, len(simplified) - 2)
        j = rng.randint(i + 2, len(simplified))
        if space.check_motion(simplified[i], simplified[j]):
            simplified = simplified[:i + 1] + simplified[j:]
    return simplified


def interpolate_path(space, path, n_states):
    """Insert states so that the path has at least n_states states.

    Existing states are kept. New states are spread over the segments
    in proportion to their length and projected onto the constraint of
    the space. A new state whose projection fails or which is not valid
    in the space is left out, so the result can be shorter than
    n_states.

    Parameters
    ----------
    space : PlanningSpace
        space interpolating states.
    path : list[numpy.ndarray]
        path to interpolate.
    n_states : int
        minimum number of states.

    Returns
    -------
    path : list[numpy.ndarray]
        interpolated path.
    """
    if len(path) >= n_states or len(path) < 2:
        return list(path)
    lengths = np.array([space.distance(a, b)
                        for a, b in zip(path[:-1], path[1:])])
    extra = n_states - len(path)
    total = lengths.sum()
    if total <= 0:
        shares = np.full(len(lengths), extra / float(len(lengths)))
    else:
        shares = extra * lengths / total
    counts = np.floor(shares).astype(int)
    remainder = extra - counts.sum()
    for i in np.argsort(-(shares - counts), kind='stable')[:remainder]:
        counts[i] += 1

    result = [path[0]]
    skipped = 0
    for (a, b), count in zip(zip(path[:-1], path[1:]), counts):
        for j in range(1, count + 1):
            q = space.interpolate(a, b, j / float(count + 1))
            if q is None or not space.is_valid(q):
                skipped += 1
                continue
            result.append(q)
        result.append(b)
    if skipped > 0:
        logger.debug('Left out %d interpolated states off the constraint',
                     skipped)
    return result
