"""Configuration classes of the `optbridge` library.

The configuration classes are built using
[`pydantic`](https://docs.pydantic.dev/). Solvers keep their settings as a
map of tagged parameters that host code may replace at any time; the map is
validated into a [`SolverConfig`][optbridge.config.SolverConfig] each time a
solver runs, and plugin specific options are checked against the schema of
the plugin with an
[`OptionsSchemaModel`][optbridge.config.options.OptionsSchemaModel].
"""

from ._solver_config import SolverConfig

__all__ = ["SolverConfig"]
