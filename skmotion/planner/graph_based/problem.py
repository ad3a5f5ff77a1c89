class GraphProblem(object):
    """Graph search problem with one rung of vertices per instruction.

    Parameters
    ----------
    joint_names : list[str]
        group joint names.
    n_steps : int
        number of steps.
    contact_manager : skmotion.collision.DiscreteContactManager
        manager with the active links of the group set.
    state_solver : skmotion.environment.StateSolver
        snapshot of the environment state.
    seed : numpy.ndarray
        joint positions per step seeding inverse kinematics.

    Attributes
    ----------
    samplers : list[VertexSampler]
        vertex sampler of every step.
    edge_evaluators : list[JointDistanceEdgeEvaluator]
        evaluator of the edges into every step. The entry of step 0 is
        unused.
    """

    def __init__(self, joint_names, n_steps, contact_manager, state_solver,
                 seed):
        self.joint_names = list(joint_names)
        self.n_steps = n_steps
        self.contact_manager = contact_manager
        self.state_solver = state_solver
        self.seed = seed
        self.samplers = [None] * n_steps
        self.edge_evaluators = [None] * n_steps
