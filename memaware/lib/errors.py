'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''


class HarnessError(Exception):
    """Base class for every error raised by the harness itself."""


class EnvironmentUnavailableError(HarnessError):
    """The host cannot run container memory tests at all. Not a defect."""


class HarnessFatalError(HarnessError):
    """
    The environment is not test-capable or the harness lost control of a run.

    Aborts the whole run and is reported separately from scenario failures.
    """


class ConfigError(HarnessFatalError, ValueError):
    """The configuration file is missing, empty or does not validate."""


class ImageBuildError(HarnessFatalError):
    pass


class ContainerStartError(HarnessFatalError):
    pass


class ContainerEngineError(HarnessFatalError):
    """The engine failed while a container was running or being read."""


class ContainerTimeoutError(HarnessFatalError):
    def __init__(self, msg, timeout_seconds=None):
        super().__init__(msg)
        self.timeout_seconds = timeout_seconds


class MissingCaptureError(HarnessFatalError):
    """A value the harness needs to continue is not present in the output."""

    def __init__(self, msg, pattern=None):
        super().__init__(msg)
        self.pattern = pattern


class ExpectationFailure(AssertionError):
    """
    An output expectation did not hold for a run.

    Attributes:
      expectation (str): human readable form of the failed check.
      excerpt (str): the part of the actual output shown to the reader.
    """

    def __init__(self, expectation, excerpt, detail=None):
        self.expectation = expectation
        self.excerpt = excerpt
        self.detail = detail
        msg = f'{detail or "Expectation not met"}: {expectation}\n----- output excerpt -----\n{excerpt}'
        super().__init__(msg)


# Exit code of `memaware check` when the harness itself failed
HARNESS_FATAL_EXIT = 2

# Return code given to pytest.exit() by the scenario module on a harness-fatal error.
# Outside the 0-5 range pytest uses for its own exit codes.
PYTEST_HARNESS_FATAL_EXIT = 7
