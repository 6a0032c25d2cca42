import json
import os
import tempfile
import unittest
from unittest.mock import patch

from memaware.lib.errors import ConfigError
from memaware.parsers.schemas import (
    HarnessConfigFile,
    MetricsCaseConfig,
    validate_config_file,
)


class TestSchemaValidation(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmpdir.cleanup()

    def write(self, name, content):
        path = os.path.join(self.tmpdir.name, name)
        with open(path, "w") as f:
            f.write(content)
        return path

    def test_defaults(self):
        config = validate_config_file(None)
        self.assertEqual(config.matrix.memory_limits, ["100m", "500m", "1g", "4g"])
        self.assertEqual(config.matrix.soft_limits, ["500m", "1g"])
        self.assertEqual(config.matrix.oom[0].alloc_mb, 266)
        self.assertEqual(len(config.matrix.metrics), 3)
        self.assertEqual(config.docker.timeout_seconds, 600)
        self.assertEqual(config.runtime.trace_options, ["-Xlog:os+container=trace"])

    def test_shipped_config_validates(self):
        path = os.path.join(os.path.dirname(__file__), "..", "input", "config_file", "memory_awareness.yaml")
        config = validate_config_file(path)
        self.assertEqual(config.docker.base_image, "oraclelinux:8")

    def test_yaml_overrides(self):
        path = self.write("cfg.yaml", "matrix:\n  memory_limits: [2g]\n  exceeds_physical: false\nstrict_stop: true\n")
        config = validate_config_file(path)
        self.assertEqual(config.matrix.memory_limits, ["2g"])
        self.assertFalse(config.matrix.exceeds_physical)
        self.assertTrue(config.strict_stop)

    def test_json_under_section_key(self):
        path = self.write("cfg.json", json.dumps({"memory_awareness": {"docker": {"timeout_seconds": 30}}}))
        self.assertEqual(validate_config_file(path).docker.timeout_seconds, 30)

    def test_missing_file(self):
        with self.assertRaises(ConfigError):
            validate_config_file(os.path.join(self.tmpdir.name, "nope.yaml"))

    def test_empty_file(self):
        with self.assertRaises(ConfigError):
            validate_config_file(self.write("empty.yaml", ""))

    def test_typo_in_key(self):
        with self.assertRaises(ConfigError) as ctx:
            validate_config_file(self.write("typo.yaml", "dokcer:\n  enabled: false\n"))
        self.assertIn("dokcer", str(ctx.exception))

    def test_bad_size(self):
        with self.assertRaises(ConfigError):
            validate_config_file(self.write("bad.yaml", "matrix:\n  memory_limits: [lots]\n"))

    def test_non_positive_timeout(self):
        with self.assertRaises(ConfigError):
            validate_config_file(self.write("bad.yaml", "docker:\n  timeout_seconds: 0\n"))

    def test_swap_smaller_than_memory(self):
        with self.assertRaises(ValueError):
            MetricsCaseConfig(memory="1g", swap="500m")

    def test_config_error_is_value_error(self):
        with self.assertRaises(ValueError):
            validate_config_file(self.write("bad.yaml", "matrix: [1, 2]\n"))

    def test_environment_overrides(self):
        with patch.dict(os.environ, {"MEMAWARE_RETAIN_IMAGE": "true", "MEMAWARE_DOCKER_SUPPORT": "false"}):
            config = HarnessConfigFile()
        self.assertTrue(config.docker.retain_image)
        self.assertFalse(config.docker.enabled)

    def test_missing_paths_reported(self):
        config = HarnessConfigFile.model_validate({"runtime": {"home": "/no/such/jdk"}})
        errors = config.validate_paths_exist()
        self.assertEqual(len(errors), 1)
        self.assertIn("/no/such/jdk", errors[0])


if __name__ == "__main__":
    unittest.main()
