"""
Pydantic schemas for the harness configuration file.

This is the single source of truth for what a memory awareness run can be
told: which runtime to put in the image, how to start it, which Docker
settings to use and which limit values to test. Every field has a default,
so an empty file (or no file) is a valid configuration.

Config validation happens early to fail fast with clear errors.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from pathlib import Path
from typing import List, Optional, Union
import json
import os

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict, ValidationError

from memaware.lib.errors import ConfigError
from memaware.lib.utils_lib import parse_size, env_flag


RETAIN_IMAGE_ENV = "MEMAWARE_RETAIN_IMAGE"
DOCKER_SUPPORT_ENV = "MEMAWARE_DOCKER_SUPPORT"


def _check_size(v: str) -> str:
    # Raises ValueError, which pydantic reports against the field
    parse_size(v)
    return v


# =============================================================================
# Runtime under test
# =============================================================================


class RuntimeConfigFile(BaseModel):
    """How the runtime under test is installed in the image and started."""

    model_config = ConfigDict(extra="forbid")

    home: Optional[str] = Field(
        default=None, description="Host directory of the runtime copied into the image (None: base image has it)"
    )
    install_path: str = Field(default="/jdk", description="Where the runtime lives inside the image")
    command: str = Field(default="/jdk/bin/java", description="Runtime launcher inside the image")
    trace_options: List[str] = Field(
        default_factory=lambda: ["-Xlog:os+container=trace"],
        description="Options making the runtime print its container detection trace",
    )
    classpath: str = Field(default="/test-classes/", description="Class path of the target programs in the container")
    inherited_options: List[str] = Field(
        default_factory=list, description="Default options given to every run unless a scenario opts out"
    )
    whitebox_options: List[str] = Field(
        default_factory=lambda: [
            "-Xbootclasspath/a:/test-classes/whitebox.jar",
            "-XX:+UnlockDiagnosticVMOptions",
            "-XX:+WhiteBoxAPI",
        ],
        description="Options enabling the diagnostic API used by PrintContainerInfo",
    )
    metrics_options: List[str] = Field(
        default_factory=lambda: ["--add-exports", "java.base/jdk.internal.platform=ALL-UNNAMED"],
        description="Options letting the metrics program reach the platform metrics",
    )


class ProgramsConfigFile(BaseModel):
    """Target programs and where they come from on the host."""

    model_config = ConfigDict(extra="forbid")

    test_classes: Optional[str] = Field(
        default=None, description="Host directory bind-mounted at the runtime class path"
    )
    whitebox_jar: Optional[str] = Field(
        default=None, description="Host path of whitebox.jar, copied into test_classes before the run"
    )
    version_program: str = Field(default="-version", description="Program printing the container trace")
    container_info: str = Field(default="PrintContainerInfo")
    attempt_oom: str = Field(default="AttemptOOM")
    check_metrics: str = Field(default="CheckOperatingSystemMXBean")


class DockerConfigFile(BaseModel):
    """Docker image and container settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=True, description="Set to false to skip the whole run")
    base_image: str = Field(default="oraclelinux:8", description="Image the test image is built FROM")
    image_prefix: str = Field(default="memaware-internal", description="Repository part of generated image names")
    image_suffix: str = Field(default="memory")
    retain_image: bool = Field(default=False, description="Keep the built image after the run")
    timeout_seconds: int = Field(default=600, gt=0, description="Wall clock limit for one container run")
    tty: bool = Field(default=True)

    @model_validator(mode='after')
    def apply_environment(self):
        """MEMAWARE_RETAIN_IMAGE / MEMAWARE_DOCKER_SUPPORT override the file."""
        if env_flag(RETAIN_IMAGE_ENV):
            self.retain_image = True
        if os.environ.get(DOCKER_SUPPORT_ENV) is not None and not env_flag(DOCKER_SUPPORT_ENV, default=True):
            self.enabled = False
        return self


# =============================================================================
# Test matrix
# =============================================================================


class OomCaseConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    memory_limit: str = Field(default="256m")
    # Allocator target, 10 MB above the container limit to be sure to cause OOM
    alloc_mb: int = Field(default=266, gt=0)

    @field_validator('memory_limit')
    @classmethod
    def validate_size(cls, v: str) -> str:
        return _check_size(v)


class MetricsCaseConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    memory: str
    swap: str

    @field_validator('memory', 'swap')
    @classmethod
    def validate_sizes(cls, v: str) -> str:
        return _check_size(v)

    @model_validator(mode='after')
    def validate_swap_covers_memory(self):
        """--memory-swap is memory plus swap, so it cannot be smaller than --memory."""
        if parse_size(self.swap) < parse_size(self.memory):
            raise ValueError(f"swap '{self.swap}' is smaller than memory '{self.memory}'")
        return self


class MatrixConfigFile(BaseModel):
    """Limit values exercised by each scenario family."""

    model_config = ConfigDict(extra="forbid")

    memory_limits: List[str] = Field(default_factory=lambda: ["100m", "500m", "1g", "4g"])
    soft_limits: List[str] = Field(default_factory=lambda: ["500m", "1g"])
    oom: List[OomCaseConfig] = Field(default_factory=lambda: [OomCaseConfig()])
    metrics: List[MetricsCaseConfig] = Field(
        default_factory=lambda: [
            MetricsCaseConfig(memory="100M", swap="150M"),
            MetricsCaseConfig(memory="128M", swap="256M"),
            MetricsCaseConfig(memory="1G", swap="1500M"),
        ]
    )
    exceeds_physical: bool = Field(default=True, description="Run the limit-above-host-memory scenario")

    @field_validator('memory_limits', 'soft_limits')
    @classmethod
    def validate_sizes(cls, v: List[str]) -> List[str]:
        for size in v:
            parse_size(size)
        return v


class HarnessConfigFile(BaseModel):
    """
    Schema for the memory_awareness.yaml configuration file.

    Usage:
        config = validate_config_file("memory_awareness.yaml")
        # or, with all defaults
        config = HarnessConfigFile()
    """

    model_config = ConfigDict(extra="forbid")  # Catch typos in top-level keys

    runtime: RuntimeConfigFile = Field(default_factory=RuntimeConfigFile)
    programs: ProgramsConfigFile = Field(default_factory=ProgramsConfigFile)
    docker: DockerConfigFile = Field(default_factory=DockerConfigFile)
    matrix: MatrixConfigFile = Field(default_factory=MatrixConfigFile)

    strict_stop: bool = Field(default=False, description="Stop at the first failing scenario")

    def validate_paths_exist(self) -> List[str]:
        """Check host paths referenced by the config. Returns error messages."""
        errors = []
        if self.runtime.home and not Path(self.runtime.home).is_dir():
            errors.append(f"Runtime home does not exist: {self.runtime.home}")
        if self.programs.test_classes and not Path(self.programs.test_classes).is_dir():
            errors.append(f"Test classes directory does not exist: {self.programs.test_classes}")
        if self.programs.whitebox_jar and not Path(self.programs.whitebox_jar).is_file():
            errors.append(f"whitebox.jar not found: {self.programs.whitebox_jar}")
        return errors


def validate_config_file(config_path: Optional[Union[str, Path]]) -> HarnessConfigFile:
    """
    Load and validate a configuration file.

    Args:
        config_path: Path to configuration file (YAML or JSON); None means defaults

    Returns:
        Validated HarnessConfigFile

    Raises:
        ConfigError: If the file is missing, empty or invalid
    """
    if config_path is None:
        return HarnessConfigFile()

    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        try:
            if config_path.suffix in ('.yaml', '.yml'):
                raw_config = yaml.safe_load(f)
            else:
                raw_config = json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not parse {config_path}: {e}") from e

    if raw_config is None:
        raise ConfigError(f"Configuration file is empty: {config_path}")

    # Allow the harness section to live under a top-level key, like other suite configs
    if isinstance(raw_config, dict) and "memory_awareness" in raw_config:
        raw_config = raw_config["memory_awareness"]

    try:
        return HarnessConfigFile.model_validate(raw_config)
    except ValidationError as e:
        # Re-raise with file context
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e
