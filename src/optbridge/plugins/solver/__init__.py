"""Solver plugins.

Solver plugins inherit from
[`SolverPlugin`][optbridge.plugins.solver.base.SolverPlugin] and create
[`Solver`][optbridge.engine.Solver] objects. The built-in
[`scipy`][optbridge.plugins.solver.scipy.SciPySolver] plugin uses algorithms
from `scipy.optimize`; other plugins are discovered through the
`optbridge.plugins.solver` entry point group.
"""
