from logging import getLogger

import networkx as nx
import numpy as np


logger = getLogger(__name__)

SOURCE = 'source'
SINK = 'sink'


class LadderGraph(object):
    """Layered graph with one rung of candidate vertices per step.

    Vertices are ``(step, i)`` tuples holding their joint positions in
    the ``positions`` attribute. Edges only connect consecutive rungs.
    Virtual source and sink vertices connect to the first and last rung
    with zero weight.

    Examples
    --------
    >>> import numpy as np
    >>> from skmotion.planner.graph_based.graph import LadderGraph
    >>> graph = LadderGraph()
    >>> graph.add_rung([np.zeros(2)])
    >>> graph.add_rung([np.ones(2), np.array([0.1, 0.0])])
    >>> graph.connect(0, lambda q0, q1: float(np.linalg.norm(q1 - q0)))
    2
    >>> path, cost = graph.shortest_path()
    >>> path[-1]
    array([0.1, 0. ])
    """

    def __init__(self):
        self.graph = nx.DiGraph()
        self.rungs = []

    @property
    def n_rungs(self):
        return len(self.rungs)

    def add_rung(self, vertices):
        step = len(self.rungs)
        nodes = []
        for i, q in enumerate(vertices):
            node = (step, i)
            self.graph.add_node(node, positions=np.asarray(q))
            nodes.append(node)
        self.rungs.append(nodes)

    def connect(self, step, evaluate):
        """Connect rung step to rung step + 1.

        Parameters
        ----------
        step : int
            index of the lower rung.
        evaluate : callable
            ``f(q0, q1) -> float or None``, None drops the edge.

        Returns
        -------
        n_edges : int
            number of added edges.
        """
        n_edges = 0
        for u in self.rungs[step]:
            q0 = self.graph.nodes[u]['positions']
            for v in self.rungs[step + 1]:
                cost = evaluate(q0, self.graph.nodes[v]['positions'])
                if cost is None:
                    continue
                self.graph.add_edge(u, v, weight=cost)
                n_edges += 1
        return n_edges

    def shortest_path(self):
        """Return the cheapest path from the first to the last rung.

        Returns
        -------
        path : list[numpy.ndarray]
            joint positions, one per rung.
        cost : float
            sum of edge weights.

        Raises
        ------
        networkx.NetworkXNoPath
            If the rungs are not connected.
        """
        graph = self.graph.copy()
        graph.add_node(SOURCE)
        graph.add_node(SINK)
        for node in self.rungs[0]:
            graph.add_edge(SOURCE, node, weight=0.0)
        for node in self.rungs[-1]:
            graph.add_edge(node, SINK, weight=0.0)
        cost, nodes = nx.single_source_dijkstra(graph, SOURCE, SINK,
                                                weight='weight')
        logger.debug('Shortest path over %d rungs costs %f', self.n_rungs,
                     cost)
        return [self.graph.nodes[n]['positions'] for n in nodes[1:-1]], cost
