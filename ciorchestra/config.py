"""
Configuration management for ciorchestra.

Loads and validates a job configuration YAML file describing the cluster
namespace, execution behavior, logging, and which images to assemble.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ciorchestra.errors import ConfigError
from ciorchestra.schemas import (
    ImageStreamTagReference,
    InputImageTagStepConfiguration,
    JobSpec,
    ReleaseTagConfiguration,
)

DEFAULT_CONFIG = {
    "namespace": "ci-op-local",
    "job_name": "local",
    "build_id": "1",
    "state_dir": "~/.ciorchestra/state",
    "behavior": {"parallelism": 4, "fail_fast": False},
    "logging": {
        "level": "INFO",
        "format": "pretty",
        "console": True,
        "output": "logs/ciorchestra-{date}.log",
    },
    "base_images": {
        "root": {"namespace": "openshift", "name": "release", "tag": "golang-1.10"},
    },
    "release": {"namespace": "openshift", "tag": "v3.11"},
}


def get_ciorchestra_home() -> Path:
    """Home directory for ciorchestra config and state ($CIORCHESTRA_HOME)."""
    return Path(os.environ.get("CIORCHESTRA_HOME", "~/.ciorchestra")).expanduser()


class CiOrchestraConfig:
    """Complete job configuration."""

    def __init__(self, raw_config: Dict[str, Any], config_path: Optional[Path] = None):
        self.config_path = config_path
        self.raw_config = raw_config

        namespace = raw_config.get("namespace") or os.environ.get("CIORCHESTRA_NAMESPACE", "")
        self.namespace = str(namespace)
        self.job_name = str(raw_config.get("job_name", ""))
        self.build_id = str(raw_config.get("build_id", ""))
        self.state_dir = Path(str(raw_config.get("state_dir", get_ciorchestra_home() / "state"))).expanduser()
        self.registry = raw_config.get("registry")

        # Behavior
        self.behavior = raw_config.get("behavior") or {}

        # Logging
        self.logging = raw_config.get("logging") or {}

        # Images
        self.base_images = raw_config.get("base_images") or {}
        self.release = raw_config.get("release")

    @classmethod
    def from_file(cls, config_path: Path) -> "CiOrchestraConfig":
        """Load and parse a YAML configuration file."""
        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax: {e}")
        if not config:
            raise ConfigError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ConfigError("Configuration file must contain a mapping")
        return cls(config, config_path)

    def get_job_spec(self) -> JobSpec:
        return JobSpec(namespace=self.namespace, job_name=self.job_name, build_id=self.build_id)

    def get_parallelism(self) -> int:
        return int(self.behavior.get("parallelism", 4))

    def should_fail_fast(self) -> bool:
        """Check if execution should stop starting steps after the first error."""
        return bool(self.behavior.get("fail_fast", False))

    def get_input_images(self) -> List[InputImageTagStepConfiguration]:
        """Input image tag configurations, ordered by pipeline tag."""
        configs = []
        for to in sorted(self.base_images):
            ref = ImageStreamTagReference.from_dict(self.base_images[to] or {})
            configs.append(InputImageTagStepConfiguration(base_image=ref, to=str(to)))
        return configs

    def get_release(self) -> Optional[ReleaseTagConfiguration]:
        if not self.release:
            return None
        return ReleaseTagConfiguration.from_dict(self.release)

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path with date interpolation, or None to skip file logging."""
        log_output = self.logging.get("output")
        if not log_output:
            return None
        log_output = log_output.replace("{date}", datetime.now().strftime("%Y-%m-%d"))
        return Path(log_output).expanduser()

    def get_log_level(self) -> str:
        """Get logging level."""
        return self.logging.get("level", "INFO").upper()

    def get_log_format(self) -> str:
        """Get log format (structured or pretty)."""
        return self.logging.get("format", "pretty")

    def should_log_to_console(self) -> bool:
        """Check if console logging is enabled."""
        return self.logging.get("console", True)

    def validate(self) -> None:
        """Validate entire configuration."""
        if not self.namespace:
            raise ConfigError("namespace is required (or set CIORCHESTRA_NAMESPACE)")

        try:
            parallelism = self.get_parallelism()
        except (TypeError, ValueError):
            raise ConfigError(f"behavior.parallelism must be an integer: {self.behavior.get('parallelism')}")
        if parallelism < 1:
            raise ConfigError(f"behavior.parallelism must be >= 1, got {parallelism}")

        if self.get_log_format() not in ("structured", "pretty"):
            raise ConfigError(f"logging.format must be 'structured' or 'pretty', got {self.get_log_format()}")

        if not isinstance(self.base_images, dict):
            raise ConfigError("base_images must be a mapping of pipeline tag to image reference")
        for to, ref in self.base_images.items():
            try:
                ImageStreamTagReference.from_dict(ref or {})
            except (TypeError, ValueError) as e:
                raise ConfigError(f"base_images.{to}: {e}")

        if self.release is not None:
            if not isinstance(self.release, dict):
                raise ConfigError("release must be a mapping")
            try:
                self.get_release()
            except ValueError as e:
                raise ConfigError(f"release: {e}")

    def __repr__(self) -> str:
        return (
            f"CiOrchestraConfig(namespace={self.namespace}, "
            f"base_images={len(self.base_images)}, release={bool(self.release)})"
        )


def load_config(config_path: Optional[Path] = None) -> CiOrchestraConfig:
    """
    Load job configuration from a YAML file.

    Args:
        config_path: Path to config file. Defaults to <home>/config.yaml

    Returns:
        Validated CiOrchestraConfig instance

    Raises:
        ConfigError: If config is invalid or missing
    """
    if config_path is None:
        config_path = get_ciorchestra_home() / "config.yaml"

    config = CiOrchestraConfig.from_file(Path(config_path))
    config.validate()
    return config
