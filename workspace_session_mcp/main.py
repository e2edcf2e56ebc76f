"""
The main entry point for the workspace session MCP server.

This script handles command-line flags, environment loading, logging configuration,
and server execution.
"""

import argparse
import logging
import os
import sys
from importlib.metadata import PackageNotFoundError, version
from typing import NoReturn

from dotenv import load_dotenv

EXIT_USAGE = 1
EXIT_INIT_FAILURE = 2

DISTRIBUTION_NAME = "workspace-session-mcp"


def package_version() -> str:
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return "unknown"


class ArgumentParser(argparse.ArgumentParser):
    """Reports unrecognized options with exit code 1."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog=DISTRIBUTION_NAME,
        description="MCP server giving an assistant safe, resumable access to a workspace over stdio.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {package_version()}"
    )
    parser.add_argument(
        "--workspace",
        metavar="PATH",
        help="Default workspace root (overrides WSMCP_WORKSPACE and the config file).",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Logging level (overrides LOG_LEVEL).",
    )
    return parser


def setup_environment(args: argparse.Namespace) -> bool:
    """
    Loads environment variables and configures application-wide logging.
    It's expected that the correct .env file is loaded by the process runner (e.g., uv).
    """
    load_dotenv()  # Load environment variables from .env file.
    if args.workspace:
        os.environ["WSMCP_WORKSPACE"] = args.workspace
    if args.log_level:
        os.environ["LOG_LEVEL"] = args.log_level

    # Configure logging using a basic, straightforward setup.
    # stdout carries the MCP protocol, so logs go to stderr.
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    try:
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            stream=sys.stderr,
        )
    except ValueError as e:
        print(f"Invalid LOG_LEVEL {log_level!r}: {e}", file=sys.stderr)
        return False
    logging.info("Environment and logging configured.")
    return True


def run_server(argv: list[str] | None = None) -> None:
    """
    Parses flags, sets up the environment and runs the MCP server.
    """
    args = build_parser().parse_args(argv)
    if not setup_environment(args):
        logging.critical("Initial environment setup failed. Exiting.")
        sys.exit(EXIT_INIT_FAILURE)

    # Import server components after setup to ensure environment is loaded first.
    try:
        from .server import mcp_app, server_config
    except (ValueError, OSError) as e:
        logging.critical(f"Failed to build the server configuration: {e}")
        sys.exit(EXIT_INIT_FAILURE)

    workspace = server_config.default_workspace()
    if not workspace.is_dir():
        logging.critical(f"Workspace {workspace} does not exist or is not a directory.")
        sys.exit(EXIT_INIT_FAILURE)

    logger = logging.getLogger(__name__)
    logger.info(f"--- Workspace Session MCP Server {package_version()} ---")
    logger.info("Starting server with transport: %s", server_config.MCP_TRANSPORT)

    # Run the application with the transport defined in the configuration.
    mcp_app.run(transport=server_config.MCP_TRANSPORT)


if __name__ == "__main__":
    run_server()
