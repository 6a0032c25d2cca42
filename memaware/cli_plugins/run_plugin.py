import pytest
import sys
import os

from .list_plugin import ListPlugin
from memaware.lib.errors import HARNESS_FATAL_EXIT, PYTEST_HARNESS_FATAL_EXIT


class RunPlugin(ListPlugin):
    def get_name(self):
        return "run"

    def get_parser(self, subparsers):
        parser = subparsers.add_parser("run", help="Run a specific test (wrapper over pytest)")
        parser.add_argument("test", help="Name of the test file to run")
        parser.add_argument("function", nargs="*", help="Optional: specific test functions to run")
        self.add_config_file_argument(parser)
        parser.add_argument("--html", help="Pytest: Create HTML report file at given path")
        parser.add_argument(
            "--self-contained-html",
            action="store_true",
            help="Pytest: Create a self-contained HTML file containing all the HTML report",
        )
        parser.add_argument(
            "--log-file",
            default="/tmp/memaware/test.log",
            help="Pytest: Path to file for logging output (default: /tmp/memaware/test.log)",
        )
        self.add_log_level_argument(parser, help="Pytest: Level of messages to catch/display")
        parser.add_argument(
            "--capture",
            choices=["no", "tee-sys", "tee-merged", "fd", "sys"],
            help="Per-test capturing method for stdout/stderr",
        )
        parser.set_defaults(_plugin=self)
        return parser

    def get_epilog(self):
        return """
Run Commands:
  memaware run memory_awareness                          Run all tests in memory_awareness
  memaware run memory_awareness test_oom                 Run specific test function
  memaware run memory_awareness --config_file cfg.yaml   Run with a test matrix
  memaware run memory_awareness --html report.html       Run test and generate HTML report"""

    def get_order(self):
        return 20

    def run(self, args):
        self.run_test(
            args.test,
            args.function,
            args.config_file,
            args.html,
            args.self_contained_html,
            args.log_file,
            args.log_level,
            args.capture,
            getattr(args, "extra_pytest_args", []),
        )

    def run_test(
        self,
        test_name,
        test_functions,
        config_file,
        html,
        self_contained_html,
        log_file,
        log_level,
        capture,
        extra_pytest_args,
    ):
        module_path = self._find_test(test_name)
        if not module_path:
            print(f"Error: Unknown test '{test_name}'")
            print("Use 'memaware list' to see available tests.")
            sys.exit(1)

        test_file = self.get_test_file(module_path)

        # Build pytest arguments
        pytest_args = []
        if test_functions:
            for func in test_functions:
                pytest_args.append(f"{test_file}::{func}")
        else:
            pytest_args.append(test_file)

        if config_file:
            pytest_args.append(f"--config_file={config_file}")

        # Ensure log directory exists
        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

        if html:
            pytest_args.append(f"--html={html}")
            if self_contained_html:
                pytest_args.append("--self-contained-html")

        if log_file:
            pytest_args.append(f"--log-file={log_file}")

        if log_level:
            pytest_args.append(f"--log-level={log_level}")

        if capture:
            pytest_args.append(f"--capture={capture}")

        pytest_args.extend(extra_pytest_args)

        exit_code = pytest.main(pytest_args)
        if exit_code == PYTEST_HARNESS_FATAL_EXIT:
            # Same exit code as `memaware check` for a run the harness could not complete
            print("HARNESS FATAL: the run was aborted by a harness error, not by the runtime under test")
            if log_file:
                print(f"See {log_file} for details")
            sys.exit(HARNESS_FATAL_EXIT)
        sys.exit(exit_code)
