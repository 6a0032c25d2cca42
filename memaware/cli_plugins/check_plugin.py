import sys
import logging

from .base import SubcommandPlugin
from memaware.driver import HarnessDriver
from memaware.lib.errors import ConfigError
from memaware.parsers.schemas import validate_config_file


class CheckPlugin(SubcommandPlugin):
    """Run every scenario of the test matrix without going through pytest."""

    def get_name(self):
        return "check"

    def get_parser(self, subparsers):
        parser = subparsers.add_parser("check", help="Run the full memory awareness matrix and print a summary")
        self.add_config_file_argument(parser)
        self.add_log_level_argument(parser, default="INFO", help="Level of messages to display (default: INFO)")
        parser.add_argument("--strict", action="store_true", help="Stop at the first failing scenario")
        parser.add_argument("--retain-image", action="store_true", help="Keep the test image after the run")
        parser.set_defaults(_plugin=self)
        return parser

    def get_epilog(self):
        return """
Check Commands:
  memaware check                              Run the default matrix
  memaware check --config_file cfg.yaml       Run the matrix from a config file
  memaware check --strict --retain-image      Stop at first failure, keep the image"""

    def get_order(self):
        return 30

    def run(self, args):
        logging.basicConfig(
            level=getattr(logging, args.log_level),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        try:
            config = validate_config_file(args.config_file)
        except ConfigError as e:
            print(f"CONFIG VALIDATION FAILED:\n{e}")
            sys.exit(2)

        if args.strict:
            config.strict_stop = True
        if args.retain_image:
            config.docker.retain_image = True

        path_errors = config.validate_paths_exist()
        if path_errors:
            print("CONFIG PATH VALIDATION FAILED:")
            for error in path_errors:
                print(f"  - {error}")
            sys.exit(2)

        report = HarnessDriver(config).execute()
        print(report.summary())
        sys.exit(report.exit_code)
