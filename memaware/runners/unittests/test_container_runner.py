import unittest
from unittest.mock import MagicMock

import docker.errors
import requests

from memaware.lib.errors import ContainerEngineError, ContainerStartError, ContainerTimeoutError
from memaware.runners.container_runner import ContainerRunner, engine_kwargs
from memaware.runners.launch_config import LaunchConfig


class TestEngineKwargs(unittest.TestCase):
    def test_memory_flags(self):
        kwargs = engine_kwargs([
            ("--memory", "256m"),
            ("--memory-swappiness", "0"),
            ("--memory-swap", "256m"),
            ("--memory-reservation", "500m"),
        ])
        self.assertEqual(
            kwargs,
            {"mem_limit": "256m", "mem_swappiness": 0, "memswap_limit": "256m", "mem_reservation": "500m"},
        )

    def test_later_value_wins(self):
        self.assertEqual(engine_kwargs([("--memory", "1g"), ("-m", "2g")]), {"mem_limit": "2g"})

    def test_list_flags_accumulate(self):
        kwargs = engine_kwargs([("--volume", "/a:/a"), ("-v", "/b:/b"), ("-e", "X=1")])
        self.assertEqual(kwargs["volumes"], ["/a:/a", "/b:/b"])
        self.assertEqual(kwargs["environment"], ["X=1"])

    def test_valueless_and_converted_flags(self):
        kwargs = engine_kwargs([("--privileged", None), ("--cpus", "1.5")])
        self.assertTrue(kwargs["privileged"])
        self.assertEqual(kwargs["nano_cpus"], 1500000000)

    def test_unknown_flag(self):
        with self.assertRaises(ContainerStartError):
            engine_kwargs([("--gpus", "all")])

    def test_missing_value(self):
        with self.assertRaises(ContainerStartError):
            engine_kwargs([("--memory", None)])

    def test_bad_value(self):
        with self.assertRaises(ContainerStartError):
            engine_kwargs([("--memory-swappiness", "none")])


def make_client(exit_code=0, output=b"Memory Limit is: 104857600\n"):
    client = MagicMock()
    container = client.containers.run.return_value
    container.short_id = "0123abcd"
    container.wait.return_value = {"StatusCode": exit_code}

    def logs(stdout=True, stderr=True):
        if stdout and stderr:
            return output
        return output if stdout else b""

    container.logs.side_effect = logs
    return client, container


class TestContainerRunner(unittest.TestCase):
    def setUp(self):
        self.config = LaunchConfig.new_config("img:tag", "-version").with_engine_flag("--memory", "100m")

    def test_run_success(self):
        client, container = make_client()
        runner = ContainerRunner(client, inherited_runtime_options=["-Xshare:off"], timeout_seconds=30)
        result = runner.run(self.config)

        self.assertEqual(result.exit_code, 0)
        self.assertIn("Memory Limit is: 104857600", result.output)
        self.assertEqual(result.command, ["/jdk/bin/java", "-Xshare:off", "-version"])
        self.assertTrue(self.config.sealed)

        args, kwargs = client.containers.run.call_args
        self.assertEqual(args, ("img:tag", ["/jdk/bin/java", "-Xshare:off", "-version"]))
        self.assertTrue(kwargs["detach"])
        self.assertEqual(kwargs["mem_limit"], "100m")
        container.wait.assert_called_once_with(timeout=30)
        container.remove.assert_called_once_with(force=True)

    def test_nonzero_exit_is_returned_unmodified(self):
        client, container = make_client(exit_code=137, output=b"java.lang.OutOfMemoryError\n")
        result = ContainerRunner(client).run(self.config)
        self.assertEqual(result.exit_code, 137)
        self.assertFalse(result.succeeded)

    def test_undecodable_output_is_replaced(self):
        client, container = make_client(output=b"limit \xff\n")
        result = ContainerRunner(client).run(self.config)
        self.assertIn("\ufffd", result.output)

    def test_timeout_kills_and_raises(self):
        client, container = make_client()
        container.wait.side_effect = requests.exceptions.ReadTimeout("read timed out")
        with self.assertRaises(ContainerTimeoutError) as ctx:
            ContainerRunner(client, timeout_seconds=5).run(self.config)
        self.assertEqual(ctx.exception.timeout_seconds, 5)
        container.kill.assert_called_once()
        container.remove.assert_called_once_with(force=True)

    def test_daemon_error_while_waiting_is_not_a_timeout(self):
        client, container = make_client()
        container.wait.side_effect = docker.errors.APIError("daemon went away")
        with self.assertRaises(ContainerEngineError):
            ContainerRunner(client, timeout_seconds=600).run(self.config)
        container.kill.assert_not_called()
        container.remove.assert_called_once_with(force=True)

    def test_daemon_error_while_reading_logs(self):
        client, container = make_client()
        container.logs.side_effect = docker.errors.APIError("logs unavailable")
        with self.assertRaises(ContainerEngineError):
            ContainerRunner(client).run(self.config)
        container.remove.assert_called_once_with(force=True)

    def test_image_not_found(self):
        client, container = make_client()
        client.containers.run.side_effect = docker.errors.ImageNotFound("no such image")
        with self.assertRaises(ContainerStartError):
            ContainerRunner(client).run(self.config)
        container.remove.assert_not_called()

    def test_engine_error_on_start(self):
        client, container = make_client()
        client.containers.run.side_effect = docker.errors.APIError("cannot start")
        with self.assertRaises(ContainerStartError):
            ContainerRunner(client).run(self.config)

    def test_wait_error_status(self):
        client, container = make_client()
        container.wait.return_value = {"StatusCode": -1, "Error": {"Message": "oci runtime error"}}
        with self.assertRaises(ContainerStartError):
            ContainerRunner(client).run(self.config)
        container.remove.assert_called_once_with(force=True)

    def test_bad_flag_never_starts_a_container(self):
        client, container = make_client()
        config = LaunchConfig.new_config("img:tag", "-version").with_engine_flag("--no-such-flag", "x")
        with self.assertRaises(ContainerStartError):
            ContainerRunner(client).run(config)
        client.containers.run.assert_not_called()


if __name__ == '__main__':
    unittest.main()
