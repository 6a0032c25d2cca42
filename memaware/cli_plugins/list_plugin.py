import os
import sys
import importlib.resources as resources
import re
import pytest
from io import StringIO
import contextlib

from .base import SubcommandPlugin


CORE_PKG_NAME = "memaware"
CORE_TESTS_DIR = "tests"


class ListPlugin(SubcommandPlugin):
    @staticmethod
    def discover_tests():
        """
        Discover all scenario modules under memaware/tests.
        Returns a dict: {test_name: module_path}
        """
        test_map = {}
        base_dir = os.path.dirname(os.path.dirname(__file__))
        tests_dir = os.path.join(base_dir, CORE_TESTS_DIR)
        if not os.path.exists(tests_dir):
            return test_map

        tests_path = f"{CORE_PKG_NAME}.{CORE_TESTS_DIR}"
        for root, dirs, files in os.walk(tests_dir):
            for file in files:
                if file.endswith(".py") and file != "__init__.py":
                    rel_path = os.path.relpath(os.path.join(root, file), tests_dir)
                    module_parts = os.path.splitext(rel_path)[0].split(os.sep)
                    test_name = os.path.splitext(file)[0]
                    test_map[test_name] = f"{tests_path}." + ".".join(module_parts)
        return test_map

    @staticmethod
    def get_test_file(module_path):
        """Helper to get the test file path from module path."""
        module_parts = module_path.split(".")
        package = ".".join(module_parts[:-1])
        try:
            files = resources.files(package)
        except ModuleNotFoundError as e:
            print(f"Error locating test file: {e}")
            sys.exit(1)
        return str(files / f"{module_parts[-1]}.py")

    def __init__(self):
        self.test_map = self.discover_tests()

    def _find_test(self, test_name):
        return self.test_map.get(test_name)

    def list_tests(self, test_name=None):
        if test_name:
            # List specific tests within a scenario module
            module_path = self._find_test(test_name)
            if not module_path:
                print(f"Error: Unknown test '{test_name}'")
                print("Use 'memaware list' to see available tests.")
                sys.exit(1)

            test_file = self.get_test_file(module_path)

            pytest_args = [test_file, "--collect-only", "-q"]
            # Capture pytest output
            buf = StringIO()
            with contextlib.redirect_stdout(buf):
                pytest.main(pytest_args)
            output = buf.getvalue()
            test_rows = []
            for line in output.splitlines():
                m = re.match(r"(.+\.py)::(test_[\w\[\]\-\.]+)", line.strip())
                if m:
                    test_rows.append(m.group(2))
            print(f"\nAvailable tests in {test_name}:")
            for func in test_rows:
                print(f"  - {func}")
            if not test_rows:
                print(output)
        else:
            print("Available tests:")
            for name in sorted(self.test_map.keys()):
                print(f"  - {name}")

    def get_name(self):
        return "list"

    def get_parser(self, subparsers):
        parser = subparsers.add_parser("list", help="List available tests")
        parser.add_argument("test", nargs="?", help="Optional: specific test file to list tests from")
        parser.set_defaults(_plugin=self)
        return parser

    def get_epilog(self):
        return """
List Commands:
  memaware list                      List all available test files
  memaware list memory_awareness     List all tests in memory_awareness"""

    def get_order(self):
        return 10

    def run(self, args):
        self.list_tests(args.test)
