# Copyright (C) 2024 Josua Krause
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Parses command line arguments of the scattersync CLI."""
import argparse
import sys
from collections.abc import Callable

from scattersync.app.control import control_start
from scattersync.system.config.config import Config
from scattersync.system.config.loader import load_config


def display_welcome(args: argparse.Namespace, command: str) -> None:
    """
    Prints the welcome message if `--no-welcome` is unset.

    Args:
        args (argparse.Namespace): The arguments.
        command (str): The name of the command.
    """
    if args.no_welcome:
        return
    import scattersync  # pylint: disable=import-outside-toplevel

    print(
        f"Starting {scattersync.__name__}({scattersync.__version__}) "
        f"as {command}")
    print(f"python version: {sys.version}")


def print_topology(config: Config) -> None:
    """
    Prints the replication topology of a configuration.

    Args:
        config (Config): The configuration.
    """
    print(f"batches: {config.get_batch_dir()}")
    print(f"data: {config.get_data_dir()}")
    print(f"checkfile: {config.get_checkfile()}")
    print(
        f"push workers: {config.get_push_procs()} "
        f"push tasks: {config.get_push_count()} "
        f"pull tasks: {config.get_pull_count()}")
    if config.is_dry_run():
        print("dry-run mode")
    for node in config.get_nodes():
        name = node.get_name()
        batches = node.get_batches()
        pull_str = "no pull" if batches is None else f"pull from {batches}"
        print(
            f"node {name}: data {node.get_data()} {pull_str} "
            f"bulk {config.get_bulk_cap(name)}")


def parse_args() -> tuple[
        argparse.Namespace,
        Callable[[argparse.Namespace], Callable[[], int | None]]]:
    """
    Parse command line arguments for the scattersync CLI.

    Returns:
        tuple[
                argparse.Namespace,
                Callable[[argparse.Namespace], Callable[[], int | None]]]: A
            tuple of the parsed arguments and the execute function to run.
    """
    parser = argparse.ArgumentParser(
        description="Run a scattersync command.")
    subparser = parser.add_subparsers(title="Commands")

    def run_control(args: argparse.Namespace) -> Callable[[], int | None]:
        display_welcome(args, "control")
        return control_start(config_file=args.config)

    subparser_run = subparser.add_parser("run")
    subparser_run.set_defaults(func=run_control)

    def run_check(args: argparse.Namespace) -> Callable[[], int | None]:
        config_file: str = args.config

        def execute() -> int | None:
            try:
                config = load_config(config_file)
            except (OSError, ValueError) as exc:
                print(f"invalid configuration {config_file}: {exc}")
                return 1
            print_topology(config)
            return 0

        return execute

    subparser_check = subparser.add_parser("check")
    subparser_check.set_defaults(func=run_check)

    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="json config file")
    parser.add_argument(
        "--no-welcome",
        action="store_true",
        help="suppresses the welcome message")

    args = parser.parse_args()
    if not hasattr(args, "func"):
        parser.error("a command is required")
    return args, args.func
