"""Nonlinear program solver boundary.

The controller describes its optimization problem as plain data: a scalar cost
function and a list of equality-constraint residual functions over a decision
vector z and a parameter vector p, plus per-call variable bounds and an
initial guess. Any engine implementing NLPSolver can solve it; IpoptSolver does
so through CasADi's interface to IPOPT.
"""

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import casadi as ca
import numpy as np
import numpy.typing as npt

from .model import MathOps

CASADI_OPS = MathOps(sin=ca.sin, cos=ca.cos, atan=ca.atan)


@dataclass(eq=False)
class NLPProblem:
    """Structure of an optimization problem that is fixed across solves.

    Attributes:
        n_vars: Length of the decision vector z
        n_params: Length of the parameter vector p
        cost: cost(z, p, ops) -> scalar objective
        constraints: constraints(z, p, ops) -> residuals, each constrained to 0
        name: Name used for the compiled solver
    """

    n_vars: int
    n_params: int
    cost: Callable[[Any, Any, MathOps], Any]
    constraints: Callable[[Any, Any, MathOps], List[Any]]
    name: str = "nlp"


@dataclass
class VariableBounds:
    """Box bounds on the decision vector. Equal bounds fix a variable."""

    lower: npt.NDArray[np.float64]
    upper: npt.NDArray[np.float64]

    def __post_init__(self) -> None:
        self.lower = np.asarray(self.lower, dtype=float)
        self.upper = np.asarray(self.upper, dtype=float)
        if self.lower.shape != self.upper.shape:
            raise ValueError(
                f"Bound shapes differ: lower {self.lower.shape}, upper {self.upper.shape}"
            )
        if np.any(self.lower > self.upper):
            raise ValueError("Lower bounds exceed upper bounds")

    def clip(self, z: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """Project a vector onto the box."""
        return np.clip(np.asarray(z, dtype=float), self.lower, self.upper)


@dataclass
class SolverResult:
    """Outcome of one solve.

    Attributes:
        success: True if the solver converged to an acceptable point
        x: Decision vector found (None if the solver produced nothing)
        objective: Objective value at x (nan if unavailable)
        status: Solver return status
        iterations: Iteration count, if reported
        solve_time: Wall-clock solve time (seconds)
    """

    success: bool
    x: Optional[npt.NDArray[np.float64]]
    objective: float
    status: str
    iterations: Optional[int] = None
    solve_time: float = 0.0


class NLPSolver(ABC):
    """Capability interface for nonlinear program solvers."""

    @abstractmethod
    def solve(
        self,
        problem: NLPProblem,
        bounds: VariableBounds,
        initial_guess: npt.NDArray[np.float64],
        parameters: npt.NDArray[np.float64],
    ) -> SolverResult:
        """Minimize problem.cost subject to problem.constraints == 0 and bounds.

        Must not raise for numerical failures; report them through
        SolverResult.success and SolverResult.status instead.
        """


class IpoptSolver(NLPSolver):
    """Interior-point solver backed by CasADi and IPOPT.

    Each NLPProblem is turned into symbolic expressions and compiled once; the
    compiled solver is cached and reused for every later call with the same
    problem object, so a control cycle only pays for the numeric solve.
    """

    def __init__(
        self,
        max_iter: int = 150,
        max_cpu_time: float = 0.05,
        tol: float = 1e-6,
        options: Optional[Dict[str, Any]] = None,
    ):
        """Initialize the solver.

        Args:
            max_iter: IPOPT iteration cap
            max_cpu_time: IPOPT CPU time cap per solve (seconds)
            tol: IPOPT convergence tolerance
            options: Extra CasADi/IPOPT options merged over the defaults
        """
        self.options: Dict[str, Any] = {
            "ipopt.max_iter": int(max_iter),
            "ipopt.max_cpu_time": float(max_cpu_time),
            "ipopt.tol": tol,
            "ipopt.print_level": 0,
            "ipopt.sb": "yes",
            "print_time": 0,
            "error_on_fail": False,
        }
        if options:
            self.options.update(options)
        self._compiled: Dict[NLPProblem, Tuple[Any, int]] = {}

    def _compile(self, problem: NLPProblem) -> Tuple[Any, int]:
        if problem not in self._compiled:
            z = ca.SX.sym("z", problem.n_vars)
            p = ca.SX.sym("p", problem.n_params)
            g = ca.vertcat(*problem.constraints(z, p, CASADI_OPS))
            nlp = {"x": z, "p": p, "f": problem.cost(z, p, CASADI_OPS), "g": g}
            solver = ca.nlpsol(problem.name, "ipopt", nlp, self.options)
            self._compiled[problem] = (solver, g.size1())
            logging.debug(
                f"Compiled NLP '{problem.name}': {problem.n_vars} variables, {g.size1()} constraints"
            )
        return self._compiled[problem]

    def solve(
        self,
        problem: NLPProblem,
        bounds: VariableBounds,
        initial_guess: npt.NDArray[np.float64],
        parameters: npt.NDArray[np.float64],
    ) -> SolverResult:
        solver, n_constraints = self._compile(problem)
        zeros = np.zeros(n_constraints)

        start = time.perf_counter()
        try:
            solution = solver(
                x0=np.asarray(initial_guess, dtype=float),
                p=np.asarray(parameters, dtype=float),
                lbx=bounds.lower,
                ubx=bounds.upper,
                lbg=zeros,
                ubg=zeros,
            )
        except RuntimeError as e:
            return SolverResult(
                success=False,
                x=None,
                objective=math.nan,
                status=f"Solver error: {e}",
                solve_time=time.perf_counter() - start,
            )
        solve_time = time.perf_counter() - start

        stats = solver.stats()
        return SolverResult(
            success=bool(stats.get("success", False)),
            x=np.asarray(solution["x"].full()).flatten(),
            objective=float(solution["f"]),
            status=str(stats.get("return_status", "unknown")),
            iterations=stats.get("iter_count"),
            solve_time=solve_time,
        )
