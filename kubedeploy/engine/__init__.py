"""Apply engine and convergence tracker."""

from kubedeploy.engine.apply import ApplyEngine, new_result
from kubedeploy.engine.convergence import ConvergenceTracker

__all__ = ["ApplyEngine", "ConvergenceTracker", "new_result"]
