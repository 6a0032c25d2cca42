LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class SubcommandPlugin:
    """
    Base class for memaware subcommands.

    main.discover_plugins() instantiates every subclass defined in a
    cli_plugins module; each one registers its own subparser and sets
    itself as the `_plugin` default so main() can dispatch to run().
    """

    def get_name(self):
        raise NotImplementedError

    def get_parser(self, subparsers):
        """Register subcommand with argparse subparsers."""
        raise NotImplementedError

    def get_epilog(self):
        """Return examples or help text for this subcommand. Default is empty."""
        return ""

    def get_order(self):
        """Return the display order for this plugin. Lower numbers appear first. Default is 0."""
        return 0

    def run(self, args):
        """Run the subcommand logic."""
        raise NotImplementedError

    @staticmethod
    def add_config_file_argument(parser):
        parser.add_argument(
            "--config_file",
            help="Path to harness configuration YAML/JSON file (built-in defaults when omitted)",
        )

    @staticmethod
    def add_log_level_argument(parser, default=None, help="Level of messages to display"):
        parser.add_argument("--log-level", default=default, choices=LOG_LEVELS, help=help)
