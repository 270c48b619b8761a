"""Top-level package for maven-dependency-resolver.

Exports the solver entry points and the centralized logging configuration.
"""

from .config import Settings
from .context import BuildContext
from .logging_config import configure_logging  # re-export for convenience
from .models import Dependency
from .scope import Scope
from .solver import Solver

__all__ = ["BuildContext", "Dependency", "Scope", "Settings", "Solver", "configure_logging"]
