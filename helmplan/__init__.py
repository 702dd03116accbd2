"""Declarative Helm lint, install, upgrade and uninstall commands."""

from .errors import ConfigurationError, HelmPlanError, ParseError, ProcessExecutionError
from .models import HelmDeclaration, Operation, ResolvedInvocation
from .operations import HelmExecutor, HelmOperations
from .tags import TagExpression

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "HelmDeclaration",
    "HelmExecutor",
    "HelmOperations",
    "HelmPlanError",
    "Operation",
    "ParseError",
    "ProcessExecutionError",
    "ResolvedInvocation",
    "TagExpression",
]
