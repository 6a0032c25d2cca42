"""
Common data structures shared by runners and the harness driver.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class RunStatus(Enum):
    """Status of a harness run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class RunResult:
    """
    Result of one container run.

    Contains raw outputs only - no parsed/validated data.
    Verification is the responsibility of the verify_lib layer.
    """

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    # stdout and stderr interleaved in the order the container wrote them
    output: str = ""

    command: List[str] = field(default_factory=list)
    start_time: float = 0.0
    end_time: float = 0.0

    @property
    def duration_seconds(self) -> float:
        """Total execution time in seconds."""
        return self.end_time - self.start_time

    @property
    def succeeded(self) -> bool:
        """Whether the program exited with status 0."""
        return self.exit_code == 0
