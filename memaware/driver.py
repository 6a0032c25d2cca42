"""
Harness driver: probe the environment, build the image, run every scenario.

Lifecycle:
1. can_test_docker() - once, up front; an unusable host ends the run as SKIPPED
2. prepare artifacts and build the image (image_scope)
3. run scenarios one at a time, never concurrently
4. remove the image, always, unless it is retained

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional
import time
import logging

import docker.errors

from memaware.lib import docker_lib
from memaware.lib.errors import EnvironmentUnavailableError, HarnessFatalError, HARNESS_FATAL_EXIT
from memaware.parsers.schemas import HarnessConfigFile
from memaware.runners._base_runner import RunStatus
from memaware.runners.container_runner import ContainerRunner
from memaware.scenarios.catalog import Scenario, ScenarioContext, ScenarioOutcome, default_catalog

log = logging.getLogger(__name__)


@dataclass
class HarnessReport:
    """Aggregated result of one harness run."""

    status: RunStatus = RunStatus.PENDING
    image: Optional[str] = None
    outcomes: List[ScenarioOutcome] = field(default_factory=list)
    fatal_error: Optional[str] = None
    start_time: float = field(default_factory=time.time)
    end_time: float = 0.0

    @property
    def failed_outcomes(self) -> List[ScenarioOutcome]:
        return [o for o in self.outcomes if not o.passed]

    @property
    def succeeded(self) -> bool:
        """SKIPPED counts as success: an unusable environment is not a defect."""
        if self.status == RunStatus.SKIPPED:
            return True
        return self.status == RunStatus.COMPLETED and not self.failed_outcomes

    @property
    def exit_code(self) -> int:
        if self.fatal_error:
            return HARNESS_FATAL_EXIT
        return 0 if self.succeeded else 1

    def summary(self) -> str:
        lines = [f"Harness run {self.status.value}"]
        for outcome in self.outcomes:
            lines.append(f"  [{outcome.status.value:>9}] {outcome.name}")
            for note in outcome.tolerated:
                lines.append(f"              tolerated: {note}")
        if self.fatal_error:
            lines.append(f"  HARNESS FATAL: {self.fatal_error}")
        passed = len(self.outcomes) - len(self.failed_outcomes)
        lines.append(f"  {passed}/{len(self.outcomes)} scenarios passed")
        return "\n".join(lines)


class HarnessDriver:
    """
    Runs a list of scenarios against one freshly built image.

    Args:
        config: validated harness configuration
        client: docker.DockerClient, created from the environment when omitted
        runner: ContainerRunner, created from config and client when omitted
    """

    def __init__(self, config: Optional[HarnessConfigFile] = None, client=None, runner=None):
        self.config = config or HarnessConfigFile()
        self._client = client
        self._runner = runner

    @property
    def client(self):
        if self._client is None:
            self._client = docker_lib.get_docker_client()
        return self._client

    @property
    def runner(self) -> ContainerRunner:
        if self._runner is None:
            self._runner = ContainerRunner(
                self.client,
                inherited_runtime_options=self.config.runtime.inherited_options,
                timeout_seconds=self.config.docker.timeout_seconds,
            )
        return self._runner

    def environment_ready(self) -> bool:
        docker_cfg = self.config.docker
        if not docker_cfg.enabled:
            return docker_lib.can_test_docker(enabled=False)
        try:
            client = self.client
        except docker.errors.DockerException as e:
            log.info(f"Docker client unavailable: {e}")
            return False
        return docker_lib.can_test_docker(client)

    def check_environment(self):
        if not self.environment_ready():
            raise EnvironmentUnavailableError("Environment cannot run container memory tests")

    def prepare_artifacts(self):
        programs = self.config.programs
        docker_lib.prepare_whitebox(programs.whitebox_jar, programs.test_classes)

    def run_scenarios(self, scenarios: Iterable[Scenario], context: ScenarioContext, report: HarnessReport):
        for scenario in scenarios:
            outcome = scenario.run(self.runner, context)
            report.outcomes.append(outcome)
            log.info(f"Scenario '{outcome.name}': {outcome.status.value}")
            if not outcome.passed and self.config.strict_stop:
                log.warning("strict_stop set, not running remaining scenarios")
                break

    def execute(self, scenarios: Optional[Iterable[Scenario]] = None) -> HarnessReport:
        report = HarnessReport()

        try:
            self.check_environment()
        except EnvironmentUnavailableError as e:
            log.info(f"{e}, skipping")
            report.status = RunStatus.SKIPPED
            report.end_time = time.time()
            return report

        if scenarios is None:
            scenarios = default_catalog(self.config.matrix)

        docker_cfg = self.config.docker
        report.image = docker_lib.image_name(docker_cfg.image_prefix, docker_cfg.image_suffix)
        report.status = RunStatus.RUNNING
        try:
            self.prepare_artifacts()
            with docker_lib.image_scope(
                self.client,
                report.image,
                docker_cfg.base_image,
                runtime_home=self.config.runtime.home,
                install_path=self.config.runtime.install_path,
                retain=docker_cfg.retain_image,
            ):
                context = ScenarioContext(image=report.image, config=self.config)
                self.run_scenarios(scenarios, context, report)
            report.status = RunStatus.COMPLETED
        except HarnessFatalError as e:
            log.error(f"HARNESS FATAL: {e}")
            report.status = RunStatus.FAILED
            report.fatal_error = f"{type(e).__name__}: {e}"
        finally:
            report.end_time = time.time()

        log.info(report.summary())
        return report
