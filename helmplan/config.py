"""Configuration management via environment variables."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class Config:
    """Runtime configuration loaded from environment variables."""

    # Path of the YAML file holding chart, target and release declarations
    declaration_path: Path = Path("helm.yaml")

    # Overrides for values in the declaration file
    helm_executable: str | None = None
    release_target: str | None = None

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        load_dotenv()

        log_level = os.getenv("HELMPLAN_LOG_LEVEL", "INFO").upper()
        if log_level not in LOG_LEVELS:
            raise ConfigurationError(
                f"HELMPLAN_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}"
            )

        return cls(
            declaration_path=Path(os.getenv("HELMPLAN_CONFIG", "helm.yaml")),
            helm_executable=os.getenv("HELM_EXECUTABLE") or None,
            release_target=os.getenv("HELMPLAN_TARGET") or None,
            log_level=log_level,
        )
