"""Exceptions raised while declaring, resolving and running Helm commands."""


class HelmPlanError(Exception):
    """Base class for helmplan failures."""


class ParseError(HelmPlanError, ValueError):
    """Raised when a tag expression cannot be parsed."""


class ConfigurationError(HelmPlanError, ValueError):
    """Raised when required configuration is missing or invalid."""


class ProcessExecutionError(HelmPlanError, RuntimeError):
    """Raised when the helm executable exits with a nonzero code."""

    def __init__(self, invocation, returncode: int, stderr: str = "", stdout: str = ""):
        self.invocation = invocation
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        message = f"helm {invocation.subcommand} failed with exit code {returncode}"
        if stderr:
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)
