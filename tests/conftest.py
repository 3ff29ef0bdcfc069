"""Shared fixtures for the controller tests."""

import math

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from mpc_control.config import MPCConfig
from mpc_control.solver import NLPSolver, SolverResult


class StubSolver(NLPSolver):
    """NLP solver double.

    Returns the initial guess unchanged (which is feasible by construction), or
    a failure when `fail` is set. Every call is recorded.
    """

    def __init__(self, fail=False, status="Solve_Succeeded", iterations=4):
        self.fail = fail
        self.status = status
        self.iterations = iterations
        self.calls = []

    def solve(self, problem, bounds, initial_guess, parameters):
        self.calls.append(
            {
                "bounds": bounds,
                "initial_guess": np.array(initial_guess, dtype=float),
                "parameters": np.array(parameters, dtype=float),
            }
        )
        if self.fail:
            return SolverResult(
                success=False,
                x=None,
                objective=math.nan,
                status=self.status,
                iterations=self.iterations,
            )
        return SolverResult(
            success=True,
            x=np.array(initial_guess, dtype=float),
            objective=math.nan,
            status=self.status,
            iterations=self.iterations,
            solve_time=0.001,
        )


class ZeroSolver(NLPSolver):
    """Claims success but returns the all-zero decision vector."""

    def solve(self, problem, bounds, initial_guess, parameters):
        return SolverResult(
            success=True, x=np.zeros(problem.n_vars), objective=0.0, status="Solve_Succeeded"
        )


@pytest.fixture
def config():
    """Default configuration with a CPU budget generous enough for slow test machines."""
    return MPCConfig().with_overrides(solver_max_cpu_time=2.0, solver_max_iter=500)


@pytest.fixture
def no_latency_config(config):
    return config.with_overrides(latency=0.0)


@pytest.fixture
def stub_solver():
    return StubSolver()


@pytest.fixture
def failing_solver():
    return StubSolver(fail=True, status="Maximum_CpuTime_Exceeded", iterations=150)
