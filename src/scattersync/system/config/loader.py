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
"""Loads a configuration from a JSON file."""
import json
from collections.abc import Callable
from typing import Any, TypedDict

from typing_extensions import NotRequired

from scattersync.system.channel.loader import ChannelModule
from scattersync.system.config.config import Config, IDENT_SCHED
from scattersync.system.logger.loader import LoggerDef
from scattersync.system.logger.log import EventListener
from scattersync.system.node.node import NodeJSON
from scattersync.system.util import report_json_error


SyncConfigJSON = TypedDict('SyncConfigJSON', {
    "nodes": dict[str, NodeJSON],
    "batch_dir": str,
    "data_dir": str,
    "checkfile": str,
    "scan_time": float,
    "fail_time": float,
    "bulk_older_than": float,
    "bulk_max_batches": int,
    "push_count": int,
    "pull_count": int,
    "push_procs": int,
    "sync_data_rec": NotRequired[str],
    "sync_data_norec": NotRequired[str],
    "pull_batches": NotRequired[str],
    "accept_status": NotRequired[list[int]],
    "dry_run": NotRequired[bool],
    "backup_batches": NotRequired[str],
    "log_debug": NotRequired[bool],
    "channel": NotRequired[ChannelModule],
    "logger": NotRequired[LoggerDef],
})
"""
The configuration JSON.

`nodes` maps node names to their configuration. `batch_dir` is the staging
root and holds the `push` and `pull` directories. `data_dir` is the local
replicated data. Nothing is scheduled or transferred while `checkfile` does
not exist. `scan_time` is the idle interval and `fail_time` the back off
after failures (both in seconds). Batch files younger than `bulk_older_than`
seconds are not grouped with other files and at most `bulk_max_batches`
files form a bulk. `push_count` and `pull_count` are the maximum number of
tasks per scheduling pass and `push_procs` the number of push workers.
`sync_data_rec`, `sync_data_norec`, and `pull_batches` are the
transfer commands (using the placeholders `%b`, `%s`, and `%d`). A
transfer succeeds if the exit code is in `accept_status`. `dry_run` only
logs commands. `backup_batches` keeps hard links of every batch in dated
folders. `log_debug` shows debug events and the output of commands.
"""


STR_KEYS = ["batch_dir", "data_dir", "checkfile"]
"""Required string fields."""
NUM_KEYS = ["scan_time", "fail_time", "bulk_older_than"]
"""Required non-negative number fields."""
INT_KEYS = ["bulk_max_batches", "push_count", "pull_count", "push_procs"]
"""Required positive integer fields."""
OPT_STR_KEYS = [
    "sync_data_rec",
    "sync_data_norec",
    "pull_batches",
    "backup_batches",
]
"""Optional string fields."""


def validate_config(obj: Any) -> SyncConfigJSON:
    """
    Checks that the JSON has the layout of a configuration. Missing transfer
    commands are not checked here since they only prevent the configuration
    from being applied.

    Args:
        obj (Any): The parsed JSON.

    Raises:
        ValueError: If the layout is invalid.

    Returns:
        SyncConfigJSON: The configuration.
    """
    if not isinstance(obj, dict):
        raise ValueError(f"configuration must be an object: {obj!r}")
    nodes = obj.get("nodes")
    if not isinstance(nodes, dict):
        raise ValueError(f"nodes must be an object: {nodes!r}")
    for name, node in nodes.items():
        if not isinstance(node, dict) or not isinstance(node.get("data"), str):
            raise ValueError(f"node {name} must have a data location")
    for key in STR_KEYS:
        if not isinstance(obj.get(key), str) or not obj[key]:
            raise ValueError(f"{key} must be a non-empty string")
    for key in NUM_KEYS:
        value = obj.get(key)
        if (
                isinstance(value, bool)
                or not isinstance(value, (int, float))
                or value < 0):
            raise ValueError(f"{key} must be a non-negative number: {value!r}")
    for key in INT_KEYS:
        value = obj.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError(f"{key} must be a positive integer: {value!r}")
    for key in OPT_STR_KEYS:
        value = obj.get(key)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"{key} must be a string: {value!r}")
    accept_status = obj.get("accept_status", [0])
    if not isinstance(accept_status, list) or not all(
            isinstance(status, int) for status in accept_status):
        raise ValueError(
            f"accept_status must be a list of integers: {accept_status!r}")
    return obj  # type: ignore


def read_config(path: str) -> SyncConfigJSON:
    """
    Reads and validates a configuration file.

    Args:
        path (str): The path of the JSON file.

    Raises:
        ValueError: If the file is not a valid configuration.
        OSError: If the file cannot be read.

    Returns:
        SyncConfigJSON: The configuration.
    """
    with open(path, "rb") as fin:
        try:
            obj = json.load(fin)
        except json.JSONDecodeError as e:
            report_json_error(e)
    return validate_config(obj)


def load_config(path: str, *, ident: str = IDENT_SCHED) -> Config:
    """
    Loads the configuration from a file. The file is re-read on every
    reload.

    Args:
        path (str): The path of the JSON file.
        ident (str, optional): The identity of the loading process. Only
            the scheduler reports configuration faults. Defaults to the
            scheduler.

    Raises:
        ValueError: If the configuration is invalid.

    Returns:
        Config: The configuration.
    """
    config = Config(reader=lambda: read_config(path))
    if not config.apply(read_config(path), ident=ident):
        raise ValueError(f"invalid configuration in {path}")
    return config


def load_test(
        config_obj: SyncConfigJSON,
        *,
        ident: str = IDENT_SCHED,
        listeners: list[EventListener] | None = None,
        reader: Callable[[], SyncConfigJSON] | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None) -> Config:
    """
    Creates a configuration for tests.

    Args:
        config_obj (SyncConfigJSON): The configuration JSON.
        ident (str, optional): The identity of the process. Defaults to the
            scheduler.
        listeners (list[EventListener] | None, optional): Additional event
            listeners that survive reloads. Defaults to None.
        reader (Callable[[], SyncConfigJSON] | None, optional): Provides the
            configuration on reload. Defaults to None.
        clock (Callable[[], float] | None, optional): The clock for node
            readiness. Defaults to None.
        sleep (Callable[[float], None] | None, optional): Replaces sleeping.
            Defaults to None.

    Raises:
        ValueError: If the configuration is invalid.

    Returns:
        Config: The configuration.
    """
    config = Config(reader=reader, clock=clock, sleep=sleep)
    for listener in [] if listeners is None else listeners:
        config.add_listener(listener)
    if not config.apply(validate_config(config_obj), ident=ident):
        raise ValueError("invalid configuration")
    return config
