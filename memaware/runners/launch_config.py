"""
Container launch configuration.

A LaunchConfig collects everything needed to start the runtime under test in
a fresh container: engine flags (memory limits, volumes ...), the runtime
options and the target program with its arguments. It is append-only while a
scenario builds it and sealed once handed to the runner.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple


DEFAULT_RUNTIME_COMMAND = "/jdk/bin/java"


@dataclass
class LaunchConfig:
    """
    Parameters for one container run.

    Runtime options are split in two groups around the inherited defaults
    (options every run gets from the harness configuration):

        <runtime_command> <runtime_options> <inherited> <appended_runtime_options> <program> <program_args>

    Runtimes let the last occurrence of an option win, so anything a scenario
    depends on (e.g. a heap cap) must go in appended_runtime_options.
    """

    image: str
    program: str
    runtime_command: str = DEFAULT_RUNTIME_COMMAND

    engine_flags: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    program_args: List[str] = field(default_factory=list)
    runtime_options: List[str] = field(default_factory=list)
    appended_runtime_options: List[str] = field(default_factory=list)

    inherit_runtime_options: bool = True
    tty: bool = True
    remove_container: bool = True

    _sealed: bool = field(default=False, init=False, repr=False, compare=False)

    @classmethod
    def new_config(cls, image: str, program: str, **kwargs) -> "LaunchConfig":
        """Base configuration for running `program` in `image` with no extra flags."""
        return cls(image=image, program=program, **kwargs)

    def _check_mutable(self):
        if self._sealed:
            raise RuntimeError(f"LaunchConfig for {self.program} was already handed to a runner")

    def seal(self) -> "LaunchConfig":
        self._sealed = True
        return self

    @property
    def sealed(self) -> bool:
        return self._sealed

    def with_engine_flag(self, key: str, value: Optional[str] = None) -> "LaunchConfig":
        """Append one engine flag; `--key=value` is split into its parts."""
        self._check_mutable()
        if value is None and "=" in key:
            key, value = key.split("=", 1)
        self.engine_flags.append((key, None if value is None else str(value)))
        return self

    def with_engine_opts(self, *tokens: str) -> "LaunchConfig":
        """
        Append engine flags written the way they appear on a command line.

        e.g. with_engine_opts("--memory", "256m", "--memory-swappiness", "0")
        A token not starting with '-' is the value of the flag before it.
        """
        self._check_mutable()
        pending = None
        for token in tokens:
            token = str(token)
            # "-1" is a value (e.g. unlimited swap), not a flag
            if token.startswith("-") and not token[1:].isdigit():
                if pending is not None:
                    self.with_engine_flag(pending)
                if "=" in token:
                    self.with_engine_flag(token)
                    pending = None
                else:
                    pending = token
            else:
                if pending is None:
                    raise ValueError(f"Engine option value {token!r} does not follow a flag")
                self.with_engine_flag(pending, token)
                pending = None
        if pending is not None:
            self.with_engine_flag(pending)
        return self

    def with_program_arg(self, value) -> "LaunchConfig":
        self._check_mutable()
        self.program_args.append(str(value))
        return self

    def with_runtime_option(self, *opts: str) -> "LaunchConfig":
        """Options placed before the inherited defaults."""
        self._check_mutable()
        self.runtime_options.extend(opts)
        return self

    def with_appended_runtime_option(self, *opts: str) -> "LaunchConfig":
        """Options placed after the inherited defaults, so they win over them."""
        self._check_mutable()
        self.appended_runtime_options.extend(opts)
        return self

    def build_command(self, inherited_options: Sequence[str] = ()) -> List[str]:
        cmd = [self.runtime_command]
        cmd.extend(self.runtime_options)
        if self.inherit_runtime_options:
            cmd.extend(inherited_options)
        cmd.extend(self.appended_runtime_options)
        cmd.append(self.program)
        cmd.extend(self.program_args)
        return cmd

    def engine_flag_values(self, key: str) -> List[Optional[str]]:
        """All values given for `key`, in order."""
        return [value for flag, value in self.engine_flags if flag == key]
