import unittest
from unittest.mock import patch

import pytest

from memaware.lib import globals
from memaware.lib.errors import ContainerTimeoutError, PYTEST_HARNESS_FATAL_EXIT
from memaware.runners._base_runner import RunResult
from memaware.scenarios.catalog import ScenarioContext, memory_limit_scenario, metrics_awareness_scenario
from memaware.tests.containers import memory_awareness


class FakeRunner:
    def __init__(self, output=None, error=None):
        self.output = output
        self.error = error

    def run(self, config):
        if self.error is not None:
            raise self.error
        return RunResult(exit_code=0, output=self.output)


METRICS_NO_SWAP_ACCOUNTING = """Checking OperatingSystemMXBean
OperatingSystemMXBean.getTotalPhysicalMemorySize: 104857600
OperatingSystemMXBean.getFreePhysicalMemorySize: 101728256
OperatingSystemMXBean.getTotalSwapSpaceSize: 8589930496
OperatingSystemMXBean.getFreeSwapSpaceSize: 0
"""


class TestRunScenario(unittest.TestCase):
    def setUp(self):
        self.ctx = ScenarioContext(image="memaware-internal:test")
        globals.error_list = []

    def tearDown(self):
        globals.error_list = []

    def test_passing_scenario(self):
        memory_awareness.run_scenario(
            memory_limit_scenario("100m"), FakeRunner("Memory Limit is: 104857600\n"), self.ctx
        )
        self.assertEqual(globals.error_list, [])

    def test_tolerated_scenario_passes(self):
        memory_awareness.run_scenario(
            metrics_awareness_scenario("100M", "150M"), FakeRunner(METRICS_NO_SWAP_ACCOUNTING), self.ctx
        )
        self.assertEqual(globals.error_list, [])

    def test_failed_scenario_fails_the_test(self):
        with self.assertRaises(pytest.fail.Exception) as ctx:
            memory_awareness.run_scenario(
                memory_limit_scenario("100m"), FakeRunner("Memory Limit is: 1048576000\n"), self.ctx
            )
        self.assertEqual(len(globals.error_list), 1)
        self.assertIn("104857600", str(ctx.exception))

    def test_harness_fatal_stops_the_session(self):
        runner = FakeRunner(error=ContainerTimeoutError("hung", timeout_seconds=600))
        with self.assertRaises(pytest.exit.Exception) as ctx:
            memory_awareness.run_scenario(memory_limit_scenario("100m"), runner, self.ctx)
        self.assertEqual(ctx.exception.returncode, PYTEST_HARNESS_FATAL_EXIT)
        self.assertIn("ContainerTimeoutError", ctx.exception.msg)

    @patch("memaware.tests.containers.memory_awareness.fail_test")
    def test_failure_is_recorded_with_fail_test(self, mock_fail_test):
        with patch("memaware.tests.containers.memory_awareness.update_test_result") as mock_update:
            memory_awareness.run_scenario(
                memory_limit_scenario("100m"), FakeRunner("Memory Limit is: 1\n"), self.ctx
            )
        mock_fail_test.assert_called_once()
        mock_update.assert_called_once()


if __name__ == "__main__":
    unittest.main()
