"""
Run a LaunchConfig in a fresh container and capture what it prints.

Uses the Docker SDK for container lifecycle. Each run blocks until the
container exits or the supervising timeout fires, in which case the
container is killed and the run is reported as harness-fatal.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import time
import logging

import docker
import docker.errors
import requests

from memaware.lib.errors import ContainerEngineError, ContainerStartError, ContainerTimeoutError
from memaware.runners._base_runner import RunResult
from memaware.runners.launch_config import LaunchConfig

log = logging.getLogger(__name__)


def _as_bool(value: Optional[str]) -> bool:
    if value is None:
        return True
    return value.strip().lower() in ("1", "true", "yes")


def _as_nano_cpus(value: str) -> int:
    return int(float(value) * 1e9)


# engine flag -> (docker SDK keyword, converter, accumulates into a list)
_FLAG_KWARGS: Dict[str, Tuple[str, Callable[[Any], Any], bool]] = {
    "--memory": ("mem_limit", str, False),
    "-m": ("mem_limit", str, False),
    "--memory-swap": ("memswap_limit", str, False),
    "--memory-reservation": ("mem_reservation", str, False),
    "--memory-swappiness": ("mem_swappiness", int, False),
    "--oom-kill-disable": ("oom_kill_disable", _as_bool, False),
    "--cpus": ("nano_cpus", _as_nano_cpus, False),
    "--cpu-shares": ("cpu_shares", int, False),
    "-c": ("cpu_shares", int, False),
    "--cpuset-cpus": ("cpuset_cpus", str, False),
    "--pids-limit": ("pids_limit", int, False),
    "--cgroupns": ("cgroupns", str, False),
    "--privileged": ("privileged", _as_bool, False),
    "--user": ("user", str, False),
    "-u": ("user", str, False),
    "--workdir": ("working_dir", str, False),
    "-w": ("working_dir", str, False),
    "--volume": ("volumes", str, True),
    "-v": ("volumes", str, True),
    "--env": ("environment", str, True),
    "-e": ("environment", str, True),
}

_VALUELESS_FLAGS = ("--oom-kill-disable", "--privileged")


def engine_kwargs(engine_flags: Sequence[Tuple[str, Optional[str]]]) -> Dict[str, Any]:
    """
    Translate command line style engine flags to docker SDK keyword arguments.

    Later occurrences of a single-valued flag replace earlier ones, which is
    how the docker CLI treats a repeated --memory.

    Raises:
        ContainerStartError: unknown flag or a value that does not convert.
    """
    kwargs: Dict[str, Any] = {}
    for flag, value in engine_flags:
        if flag not in _FLAG_KWARGS:
            raise ContainerStartError(f"Unsupported container engine flag: {flag}")
        name, convert, accumulate = _FLAG_KWARGS[flag]
        if value is None and flag not in _VALUELESS_FLAGS:
            raise ContainerStartError(f"Container engine flag {flag} needs a value")
        try:
            converted = convert(value)
        except (TypeError, ValueError) as e:
            raise ContainerStartError(f"Bad value {value!r} for engine flag {flag}: {e}") from e
        if accumulate:
            kwargs.setdefault(name, []).append(converted)
        else:
            kwargs[name] = converted
    return kwargs


def _decode(data) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return str(data or "")


class ContainerRunner:
    """
    Executes LaunchConfigs synchronously, one container at a time.

    Args:
        client: docker.DockerClient (docker.from_env() when omitted)
        inherited_runtime_options: runtime options every run gets between the
            scenario's own options and its appended ones
        timeout_seconds: wall clock limit for one container
    """

    def __init__(
        self,
        client: Optional[docker.DockerClient] = None,
        inherited_runtime_options: Sequence[str] = (),
        timeout_seconds: int = 600,
    ):
        self.client = client if client is not None else docker.from_env()
        self.inherited_runtime_options: List[str] = list(inherited_runtime_options)
        self.timeout_seconds = timeout_seconds

    def run(self, config: LaunchConfig) -> RunResult:
        """
        Run the config's program in a new container and wait for it.

        Returns:
            RunResult with the unmodified exit code and complete output

        Raises:
            ContainerStartError: image missing, bad flags or engine failure
            ContainerTimeoutError: the container outlived timeout_seconds
            ContainerEngineError: the daemon failed while waiting or reading logs
        """
        config.seal()
        kwargs = engine_kwargs(config.engine_flags)
        command = config.build_command(self.inherited_runtime_options)

        log.info(f"Running in {config.image}: {' '.join(command)}")
        if config.engine_flags:
            log.info(f"  Engine flags: {config.engine_flags}")

        start_time = time.time()
        try:
            container = self.client.containers.run(
                config.image,
                command,
                detach=True,
                tty=config.tty,
                **kwargs,
            )
        except docker.errors.ImageNotFound as e:
            raise ContainerStartError(f"Image not found: {config.image}") from e
        except docker.errors.DockerException as e:
            raise ContainerStartError(f"Container engine could not start {config.program}: {e}") from e

        try:
            try:
                status = container.wait(timeout=self.timeout_seconds)
            # APIError is a requests HTTPError, it has to be told apart from a read timeout first
            except docker.errors.APIError as e:
                raise ContainerEngineError(f"Container engine failed while waiting for {config.program}: {e}") from e
            except requests.exceptions.RequestException as e:
                log.error(f"Container {container.short_id} still running after {self.timeout_seconds}s, killing it")
                try:
                    container.kill()
                except docker.errors.APIError as kill_error:
                    log.warning(f"Kill failed for container {container.short_id}: {kill_error}")
                raise ContainerTimeoutError(
                    f"{config.program} did not finish within {self.timeout_seconds}s",
                    timeout_seconds=self.timeout_seconds,
                ) from e

            if status.get("Error"):
                raise ContainerStartError(f"Container engine reported an error for {config.program}: {status['Error']}")
            exit_code = status.get("StatusCode", -1)

            try:
                stdout = _decode(container.logs(stdout=True, stderr=False))
                stderr = _decode(container.logs(stdout=False, stderr=True))
                output = _decode(container.logs(stdout=True, stderr=True))
            except docker.errors.APIError as e:
                raise ContainerEngineError(f"Could not read the output of {config.program}: {e}") from e
        finally:
            if config.remove_container:
                try:
                    container.remove(force=True)
                except docker.errors.APIError as e:
                    log.warning(f"Could not remove container {container.short_id}: {e}")

        end_time = time.time()
        log.info(f"{config.program} exited with {exit_code} after {end_time - start_time:.1f}s")
        return RunResult(
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            output=output,
            command=command,
            start_time=start_time,
            end_time=end_time,
        )
