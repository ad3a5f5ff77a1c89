from enum import Enum
from logging import getLogger
import threading
import time

from skmotion.planner.validation import trajectory_path_length


logger = getLogger(__name__)


class ParallelPlanStatus(Enum):
    SOLVED = 'solved'
    TIMEOUT = 'timeout'
    TERMINATED = 'terminated'


class ParallelPlan(object):
    """Run several tree planners in threads until one finds a path.

    Every planner runs in its own thread and owns its planning space.
    Workers stop through a shared event once ``max_solutions`` paths are
    found, on the deadline, or when termination is requested. Paths are
    recorded in the order they are reported and none is recorded after
    the workers were told to stop. With a single solution the first
    reported path wins. With several solutions the shortest path wins
    and equal lengths go to the earlier report.

    Parameters
    ----------
    planners : list[TreePlanner]
        planners to run.
    termination_event : threading.Event
        set by the caller to request termination.
    max_solutions : int
        number of paths collected before stopping.
    poll_interval : float
        seconds between deadline and termination polls.
    """

    def __init__(self, planners, termination_event, max_solutions=1,
                 poll_interval=0.005):
        if len(planners) == 0:
            raise ValueError('ParallelPlan requires at least one planner')
        self.planners = planners
        self.termination_event = termination_event
        self.max_solutions = max(1, min(max_solutions, len(planners)))
        self.poll_interval = poll_interval
        self.iterations = 0

    def _work(self, index, stop_event, results, errors, lock):
        planner = self.planners[index]
        while not stop_event.is_set() \
                and not self.termination_event.is_set():
            try:
                path = planner.step()
            except Exception as e:
                errors[index] = e
                stop_event.set()
                return
            if path is not None:
                with lock:
                    if stop_event.is_set():
                        return
                    results.append((index, path))
                    if len(results) >= self.max_solutions:
                        stop_event.set()
                return

    def solve(self, planning_time):
        """Run the planners.

        Parameters
        ----------
        planning_time : float
            wall clock limit in seconds.

        Returns
        -------
        status : ParallelPlanStatus
            outcome.
        path : list[numpy.ndarray] or None
            winning path.
        index : int or None
            index of the winning planner.
        """
        stop_event = threading.Event()
        results = []
        errors = {}
        lock = threading.Lock()
        start_iterations = sum(p.iterations for p in self.planners)
        threads = [threading.Thread(target=self._work,
                                    args=(i, stop_event, results, errors,
                                          lock),
                                    daemon=True)
                   for i in range(len(self.planners))]
        deadline = time.perf_counter() + planning_time
        for thread in threads:
            thread.start()
        status = None
        while status is None:
            if stop_event.wait(self.poll_interval):
                status = ParallelPlanStatus.SOLVED
            elif self.termination_event.is_set():
                status = ParallelPlanStatus.TERMINATED
            elif time.perf_counter() >= deadline:
                status = ParallelPlanStatus.TIMEOUT
            elif not any(t.is_alive() for t in threads):
                status = ParallelPlanStatus.SOLVED
        stop_event.set()
        for thread in threads:
            thread.join()
        self.iterations = sum(p.iterations for p in self.planners) \
            - start_iterations
        if errors:
            raise errors[min(errors)]

        if status == ParallelPlanStatus.TERMINATED or not results:
            if status == ParallelPlanStatus.SOLVED:
                status = ParallelPlanStatus.TIMEOUT
            return status, None, None
        if self.max_solutions == 1:
            index, path = results[0]
        else:
            order = min(range(len(results)), key=lambda k: (
                trajectory_path_length(results[k][1]), k))
            index, path = results[order]
        logger.debug('Planner %d of %d won with %d states after %d '
                     'iterations', index, len(self.planners), len(path),
                     self.iterations)
        return ParallelPlanStatus.SOLVED, path, index
