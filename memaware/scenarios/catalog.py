"""
Memory awareness scenarios.

Each scenario turns domain parameters ("100m", an allocation size ...) into a
LaunchConfig and the output the runtime must produce under it. Scenarios are
stateless templates: running one builds fresh configs every time.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional
import time
import logging

from memaware.lib.errors import ExpectationFailure
from memaware.lib.utils_lib import log_new_test_case, parse_size, print_test_output
from memaware.lib.verify_lib import (
    OutputAnalyzer,
    ExactContains,
    NotContains,
    RegexMatches,
    ExitCodeEquals,
    ExitCodeNonZero,
    check_with_fallback,
)
from memaware.parsers.schemas import HarnessConfigFile, MatrixConfigFile
from memaware.runners.launch_config import LaunchConfig

log = logging.getLogger(__name__)


OOM_START_MARKER = "Entering AttemptOOM main"
OOM_SUCCESS_MARKER = "AttemptOOM allocation successful"
OOM_ERROR = "java.lang.OutOfMemoryError"

METRICS_BANNER = "Checking OperatingSystemMXBean"
METRICS_PREFIX = "OperatingSystemMXBean"

HOST_MEMORY_PATTERN = r"total physical memory: (\d+)"


@dataclass(frozen=True)
class ScenarioContext:
    """What every scenario needs to know about the current run."""

    image: str
    config: HarnessConfigFile = field(default_factory=HarnessConfigFile)

    def new_config(self, program: Optional[str] = None) -> LaunchConfig:
        """
        Base LaunchConfig: container trace enabled, test classes on the class path.

        Without a program the runtime just prints its version, which is
        enough to get the container detection trace.
        """
        runtime = self.config.runtime
        programs = self.config.programs
        opts = LaunchConfig.new_config(
            self.image,
            program or programs.version_program,
            runtime_command=runtime.command,
            tty=self.config.docker.tty,
        )
        if programs.test_classes:
            opts.with_engine_flag("--volume", f"{programs.test_classes}:{runtime.classpath}")
        opts.with_runtime_option(*runtime.trace_options)
        opts.with_runtime_option("-cp", runtime.classpath)
        return opts

    def add_whitebox_opts(self, opts: LaunchConfig) -> LaunchConfig:
        return opts.with_runtime_option(*self.config.runtime.whitebox_options)


class ScenarioStatus(Enum):
    PASSED = "passed"
    # Passed, but only through a tolerated alternate expectation
    TOLERATED = "tolerated"
    FAILED = "failed"


@dataclass
class ScenarioOutcome:
    name: str
    status: ScenarioStatus
    message: Optional[str] = None
    tolerated: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def passed(self) -> bool:
        return self.status != ScenarioStatus.FAILED


@dataclass
class Scenario:
    """
    One named behaviour check: a config builder and the expectations on its output.

    tolerated_alternates maps an expectation to the fallback checked when
    the host cannot satisfy it (e.g. no swap accounting).
    """

    name: str
    build_config: Callable[[ScenarioContext], LaunchConfig]
    expectations: List = field(default_factory=list)
    tolerated_alternates: Dict = field(default_factory=dict)

    def verify(self, result) -> List[str]:
        """
        Check every expectation against one run result, in order.

        Returns:
            notes for the tolerated alternates that were used

        Raises:
            ExpectationFailure: the first expectation (with its fallback) that failed
        """
        analyzer = OutputAnalyzer(result)
        notes = []
        for expectation in self.expectations:
            fallback = self.tolerated_alternates.get(expectation)
            if fallback is None:
                expectation.check(analyzer)
                continue
            note = check_with_fallback(analyzer, expectation, fallback)
            if note:
                notes.append(note)
        return notes

    def execute(self, runner, context: ScenarioContext) -> List[str]:
        result = runner.run(self.build_config(context))
        print_test_output(log, result)
        return self.verify(result)

    def run(self, runner, context: ScenarioContext) -> ScenarioOutcome:
        """
        Execute the scenario and classify the result.

        Expectation failures become a FAILED outcome; harness errors
        (container start failures, timeouts, missing captures) propagate.
        """
        log_new_test_case(self.name)
        start_time = time.time()
        try:
            notes = self.execute(runner, context)
        except ExpectationFailure as e:
            log.error(f"Scenario '{self.name}' failed: {e}")
            return ScenarioOutcome(
                name=self.name,
                status=ScenarioStatus.FAILED,
                message=str(e),
                duration_seconds=time.time() - start_time,
            )
        status = ScenarioStatus.TOLERATED if notes else ScenarioStatus.PASSED
        return ScenarioOutcome(
            name=self.name,
            status=status,
            tolerated=notes,
            duration_seconds=time.time() - start_time,
        )


# =============================================================================
# Scenario factories
# =============================================================================


def memory_limit_scenario(value: str) -> Scenario:
    """The runtime reports the container hard memory limit, in bytes."""
    expected = parse_size(value)

    def build(ctx: ScenarioContext) -> LaunchConfig:
        return ctx.new_config().with_engine_flag("--memory", value)

    return Scenario(
        name=f"memory limit: {value}",
        build_config=build,
        expectations=[RegexMatches(rf"Memory Limit is:.*\b{expected}\b")],
    )


def memory_soft_limit_scenario(value: str) -> Scenario:
    """The runtime reports the container memory reservation as its soft limit."""
    expected = parse_size(value)

    def build(ctx: ScenarioContext) -> LaunchConfig:
        opts = ctx.new_config(ctx.config.programs.container_info)
        ctx.add_whitebox_opts(opts)
        return opts.with_engine_flag(f"--memory-reservation={value}")

    return Scenario(
        name=f"memory soft limit: {value}",
        build_config=build,
        expectations=[RegexMatches(rf"Memory Soft Limit.*\b{expected}\b")],
    )


def oom_scenario(memory_limit: str, alloc_mb: int) -> Scenario:
    """
    Provoke an OutOfMemoryError inside the container.

    The allocator asks for alloc_mb, more than the container allows, with a
    heap capped at half of it. The heap cap goes after the inherited runtime
    options so an inherited heap size cannot override it.
    """
    heap_size = f"{alloc_mb // 2}m"

    def build(ctx: ScenarioContext) -> LaunchConfig:
        log.info(f"sizeToAllocInMb is:{alloc_mb} sizeToAllocInMb/2 is:{alloc_mb // 2}")
        # swappiness 0 disables anonymous page swapping
        return (
            ctx.new_config(ctx.config.programs.attempt_oom)
            .with_engine_opts(
                "--memory", memory_limit,
                "--memory-swappiness", "0",
                "--memory-swap", memory_limit,
            )
            .with_program_arg(alloc_mb)
            .with_appended_runtime_option(f"-Xmx{heap_size}")
        )

    return Scenario(
        name=f"OOM: limit {memory_limit}, allocating {alloc_mb}MB",
        build_config=build,
        expectations=[
            ExitCodeNonZero(),
            ExactContains(OOM_START_MARKER),
            NotContains(OOM_SUCCESS_MARKER),
            ExactContains(OOM_ERROR),
        ],
    )


def metrics_awareness_scenario(memory: str, swap: str) -> Scenario:
    """
    The metrics API reports the container's memory and swap.

    --memory-swap is memory plus swap, so the expected swap size is the
    difference. Hosts without swap accounting make the runtime report host
    values instead; the swap checks accept that as a tolerated alternate.
    """
    expected_memory = parse_size(memory)
    expected_swap = parse_size(swap) - expected_memory

    def build(ctx: ScenarioContext) -> LaunchConfig:
        return (
            ctx.new_config(ctx.config.programs.check_metrics)
            .with_engine_opts("--memory", memory, "--memory-swap", swap)
            .with_runtime_option(*ctx.config.runtime.metrics_options)
        )

    total_swap = RegexMatches(rf"{METRICS_PREFIX}\.getTotalSwapSpaceSize: {expected_swap}\b")
    free_swap = RegexMatches(rf"{METRICS_PREFIX}\.getFreeSwapSpaceSize: [1-9][0-9]*")

    return Scenario(
        name=f"OperatingSystemMXBean: memory {memory}, swap {swap}",
        build_config=build,
        expectations=[
            ExitCodeEquals(0),
            ExactContains(METRICS_BANNER),
            RegexMatches(rf"{METRICS_PREFIX}\.getTotalPhysicalMemorySize: {expected_memory}\b"),
            RegexMatches(rf"{METRICS_PREFIX}\.getFreePhysicalMemorySize: [1-9][0-9]*"),
            total_swap,
            free_swap,
        ],
        tolerated_alternates={
            total_swap: RegexMatches(rf"{METRICS_PREFIX}\.getTotalSwapSpaceSize: [0-9]+"),
            free_swap: RegexMatches(rf"{METRICS_PREFIX}\.getFreeSwapSpaceSize: 0\b"),
        },
    )


class ExceedsPhysicalPhase(Enum):
    DISCOVER = "discover"
    DERIVE = "derive"
    VERIFY = "verify"
    DONE = "done"


@dataclass
class ExceedsPhysicalState:
    phase: ExceedsPhysicalPhase = ExceedsPhysicalPhase.DISCOVER
    host_memory: Optional[str] = None
    inflated_limit: Optional[str] = None


class ExceedsPhysicalScenario(Scenario):
    """
    A container limit above the host's physical memory must be ignored.

        DISCOVER  run without a limit, capture the host's physical memory P
        DERIVE    build a limit one decimal order larger: P followed by "0"
        VERIFY    run with that limit; the runtime must say it ignored it
                  (or treats it as unlimited) and uses P

    P not showing up in the first run is harness-fatal, not a failure.
    """

    def __init__(self):
        super().__init__(name="container memory limit exceeds physical memory", build_config=self._verify_config)

    def _verify_config(self, ctx: ScenarioContext, state: Optional[ExceedsPhysicalState] = None) -> LaunchConfig:
        if state is None or state.inflated_limit is None:
            return ctx.new_config()
        return ctx.new_config().with_engine_flag("--memory", state.inflated_limit)

    @staticmethod
    def expectation_for(state: ExceedsPhysicalState) -> RegexMatches:
        return RegexMatches(
            rf"container memory limit (ignored: {state.inflated_limit}\b|unlimited: -1), "
            rf"using host value {state.host_memory}\b"
        )

    def step(self, state: ExceedsPhysicalState, runner, ctx: ScenarioContext) -> ExceedsPhysicalState:
        if state.phase == ExceedsPhysicalPhase.DISCOVER:
            result = runner.run(ctx.new_config())
            print_test_output(log, result)
            state.host_memory = OutputAnalyzer(result).require_first_match(
                HOST_MEMORY_PATTERN, 1, what="'total physical memory'"
            )
            log.info(f"Host physical memory: {state.host_memory}")
            state.phase = ExceedsPhysicalPhase.DERIVE
        elif state.phase == ExceedsPhysicalPhase.DERIVE:
            state.inflated_limit = state.host_memory + "0"
            log.info(f"Setting container memory limit to {state.inflated_limit}")
            state.phase = ExceedsPhysicalPhase.VERIFY
        elif state.phase == ExceedsPhysicalPhase.VERIFY:
            result = runner.run(self._verify_config(ctx, state))
            print_test_output(log, result)
            self.expectation_for(state).check(OutputAnalyzer(result))
            state.phase = ExceedsPhysicalPhase.DONE
        return state

    def execute(self, runner, context: ScenarioContext) -> List[str]:
        state = ExceedsPhysicalState()
        while state.phase != ExceedsPhysicalPhase.DONE:
            state = self.step(state, runner, context)
        return []


def default_catalog(matrix: Optional[MatrixConfigFile] = None) -> Iterator[Scenario]:
    """All scenarios for a test matrix, in the order they should run."""
    matrix = matrix or MatrixConfigFile()
    for value in matrix.memory_limits:
        yield memory_limit_scenario(value)
    for value in matrix.soft_limits:
        yield memory_soft_limit_scenario(value)
    for case in matrix.oom:
        yield oom_scenario(case.memory_limit, case.alloc_mb)
    for case in matrix.metrics:
        yield metrics_awareness_scenario(case.memory, case.swap)
    if matrix.exceeds_physical:
        yield ExceedsPhysicalScenario()
