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
"""The configuration connects the settings of the configuration file with the
logger and the readiness of the nodes of the current process. Every process
owns its own configuration object and reloads it at the start of each loop
iteration."""
import os
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from scattersync.system.base import MODE_PUSH, TransferMode
from scattersync.system.channel.loader import ChannelModule, DEFAULT_CHANNEL
from scattersync.system.logger.context import add_context
from scattersync.system.logger.loader import (
    DEFAULT_LOGGER,
    setup_event_stream,
)
from scattersync.system.logger.log import EventListener, EventStream
from scattersync.system.node.node import Node
from scattersync.system.node.readiness import NS_BACKOFF, ReadinessTracker
from scattersync.system.util import get_day_str


if TYPE_CHECKING:
    from scattersync.system.config.loader import SyncConfigJSON


IDENT_MAIN = "main"
"""The control process before it starts scheduling."""
IDENT_SCHED = "sched"
"""The scheduler. This is the only process that reports configuration
faults."""
IDENT_RELAY = "batchq"
"""The enqueue and relay worker."""
IDENT_PULL = "pull"
"""The pull worker."""


def push_ident(index: int) -> str:
    """
    The identity of a push worker.

    Args:
        index (int): The index of the push worker.

    Returns:
        str: The identity.
    """
    return f"push {index}"


class Config:
    """The configuration of a scattersync process."""
    def __init__(
            self,
            *,
            reader: 'Callable[[], SyncConfigJSON] | None' = None,
            clock: Callable[[], float] | None = None,
            sleep: Callable[[float], None] | None = None) -> None:
        """
        Creates an empty configuration. Use `apply` to set the content.

        Args:
            reader (Callable[[], SyncConfigJSON] | None, optional): Reads the
                current configuration on reload. If None, reloads have no
                effect. Defaults to None.
            clock (Callable[[], float] | None, optional): The clock used for
                node readiness. Defaults to None.
            sleep (Callable[[float], None] | None, optional): Replaces
                `time.sleep`. Defaults to None.
        """
        self._reader = reader
        self._sleep = time.sleep if sleep is None else sleep
        self._logger = EventStream()
        self._extra_listeners: list[EventListener] = []
        self._readiness = ReadinessTracker(clock=clock)
        self._obj: 'SyncConfigJSON | None' = None
        self._nodes: dict[str, Node] = {}

    def add_listener(self, listener: EventListener) -> None:
        """
        Adds an event listener that is kept when the logger configuration
        changes.

        Args:
            listener (EventListener): The listener.
        """
        self._extra_listeners.append(listener)
        self._logger.add_listener(listener)

    def get_logger(self) -> EventStream:
        """
        Get the logger.

        Returns:
            EventStream: The logger.
        """
        return self._logger

    def _get_obj(self) -> 'SyncConfigJSON':
        if self._obj is None:
            raise ValueError("configuration not initialized")
        return self._obj

    def apply(self, obj: 'SyncConfigJSON', *, ident: str) -> bool:
        """
        Sets the content of the configuration. The content is rejected if the
        transfer commands are missing or if the set of nodes differs from the
        current one. Faults are only reported by the scheduler to avoid
        repeating the message in every process.

        Args:
            obj (SyncConfigJSON): The validated configuration JSON.
            ident (str): The identity of the current process.

        Raises:
            ValueError: If a node is invalid.

        Returns:
            bool: Whether the configuration has been applied.
        """
        logger = self._logger
        is_sched = ident == IDENT_SCHED
        if not obj.get("sync_data_rec") or not obj.get("sync_data_norec"):
            if is_sched:
                logger.log_error(
                    "error.config.commands",
                    "config",
                    message="sync data command not configured")
            return False
        if self._obj is not None and set(self._nodes) != set(obj["nodes"]):
            if is_sched:
                logger.log_error(
                    "error.config.nodes",
                    "config",
                    message="nodes cannot change at runtime")
            return False
        nodes = {
            name: Node.from_json(name, node_obj)
            for name, node_obj in obj["nodes"].items()
        }
        if not obj.get("pull_batches") and is_sched:
            logger.log_warning(
                "warn.config.pull_batches",
                "pull batches command not configured")
        self._obj = obj
        self._nodes = nodes
        setup_event_stream(
            logger,
            obj.get("logger", DEFAULT_LOGGER),
            log_debug=self.is_log_debug())
        for listener in self._extra_listeners:
            logger.add_listener(listener)
        return True

    def reload(self, ident: str) -> bool:
        """
        Re-reads the configuration. Nothing happens if the configuration did
        not change. Invalid configurations are reported and the current
        configuration stays active.

        Args:
            ident (str): The identity of the current process.

        Returns:
            bool: Whether a new configuration has been applied.
        """
        if self._reader is None:
            return False
        logger = self._logger
        with add_context({"process": ident}):
            try:
                obj = self._reader()
            except (OSError, ValueError) as exc:
                logger.log_warning(
                    "warn.config.reload", f"error reloading config: {exc}")
                return False
            if obj == self._obj:
                return False
            try:
                if not self.apply(obj, ident=ident):
                    return False
            except ValueError as exc:
                logger.log_warning(
                    "warn.config.reload", f"error reloading config: {exc}")
                return False
            logger.log_notice(
                "notice.config.reload", "configuration reloaded")
        return True

    def do_sleep(self, seconds: float) -> None:
        """
        Sleeps for the given time.

        Args:
            seconds (float): The time in seconds.
        """
        if seconds > 0:
            self._sleep(seconds)

    def check_file(self) -> bool:
        """
        Whether the checkfile exists. Nothing must be scheduled or transferred
        without it.

        Returns:
            bool: True, if the checkfile exists.
        """
        checkfile = self.get_checkfile()
        if not os.path.exists(checkfile):
            self._logger.log_error(
                "error.checkfile",
                "checkfile",
                message=f"checkfile {checkfile} does not exist")
            return False
        return True

    def get_node_names(self) -> list[str]:
        """
        The names of all nodes in configuration order.

        Returns:
            list[str]: The node names.
        """
        return list(self._nodes)

    def get_nodes(self) -> list[Node]:
        return list(self._nodes.values())

    def get_node(self, name: str) -> Node | None:
        """
        Get a node by name.

        Args:
            name (str): The name.

        Returns:
            Node | None: The node or None if the node is unknown.
        """
        return self._nodes.get(name)

    def get_batch_dir(self) -> str:
        return self._get_obj()["batch_dir"]

    def get_data_dir(self) -> str:
        return self._get_obj()["data_dir"]

    def get_checkfile(self) -> str:
        return self._get_obj()["checkfile"]

    def get_scan_time(self) -> float:
        return self._get_obj()["scan_time"]

    def get_fail_time(self) -> float:
        return self._get_obj()["fail_time"]

    def get_bulk_older_than(self) -> float:
        return self._get_obj()["bulk_older_than"]

    def get_bulk_cap(self, node: str) -> int:
        """
        The maximum number of batches in a bulk for the given node.

        Args:
            node (str): The node.

        Returns:
            int: The node specific value or the global value.
        """
        res = None
        node_obj = self._nodes.get(node)
        if node_obj is not None:
            res = node_obj.get_bulk_max_batches()
        if res is None:
            res = self._get_obj()["bulk_max_batches"]
        return res

    def get_push_count(self) -> int:
        return self._get_obj()["push_count"]

    def get_pull_count(self) -> int:
        return self._get_obj()["pull_count"]

    def get_schedule_count(self, mode: TransferMode) -> int:
        """
        The maximum number of tasks per scheduling pass.

        Args:
            mode (TransferMode): The transfer mode.

        Returns:
            int: The number of tasks.
        """
        if mode == MODE_PUSH:
            return self.get_push_count()
        return self.get_pull_count()

    def get_push_procs(self) -> int:
        return self._get_obj()["push_procs"]

    def get_sync_data_command(self, node: str, *, is_rec: bool) -> str:
        """
        The transfer command for the given node and batch type.

        Args:
            node (str): The node.
            is_rec (bool): Whether the batches are recursive.

        Returns:
            str: The node override or the global command.
        """
        node_obj = self._nodes.get(node)
        if node_obj is not None:
            res = node_obj.get_sync_data_command(is_rec)
            if res is not None:
                return res
        obj = self._get_obj()
        return obj["sync_data_rec"] if is_rec else obj["sync_data_norec"]

    def get_pull_batches_command(self) -> str | None:
        return self._get_obj().get("pull_batches") or None

    def get_accept_status(self) -> list[int]:
        return self._get_obj().get("accept_status", [0])

    def is_dry_run(self) -> bool:
        """
        Whether commands are only logged instead of executed. In dry-run mode
        batch files are never deleted or moved.

        Returns:
            bool: True, if in dry-run mode.
        """
        return self._get_obj().get("dry_run", False)

    def is_log_debug(self) -> bool:
        return self._get_obj().get("log_debug", False)

    def get_channel_module(self) -> ChannelModule:
        return self._get_obj().get("channel", DEFAULT_CHANNEL)

    def get_default_capacity(self) -> int:
        """
        The channel capacity if none is configured. This is large enough to
        hold all tasks of a scheduling pass twice.

        Returns:
            int: The capacity.
        """
        return 2 * (self.get_push_count() + self.get_pull_count())

    def get_mode_dir(self, mode: TransferMode, node: str) -> str:
        """
        The directory holding batches of a node waiting to be pushed or
        pulled batches of a node waiting to be promoted.

        Args:
            mode (TransferMode): The transfer mode.
            node (str): The node.

        Returns:
            str: The path of the directory.
        """
        return os.path.join(self.get_batch_dir(), mode, node)

    def get_backup_dir(self, mode: TransferMode, node: str) -> str | None:
        """
        The backup directory of the current day.

        Args:
            mode (TransferMode): The transfer mode.
            node (str): The node.

        Returns:
            str | None: The path of the directory or None if backups are
                disabled.
        """
        backup = self._get_obj().get("backup_batches")
        if not backup:
            return None
        return os.path.join(backup, get_day_str(), mode, node)

    def get_readiness(self) -> ReadinessTracker:
        return self._readiness

    def is_ready(self, node: str) -> bool:
        """
        Whether the node can be processed by the current process.

        Args:
            node (str): The node.

        Returns:
            bool: True, if the node is not backing off.
        """
        return self._readiness.is_ready(node)

    def set_failing(self, node: str) -> None:
        """
        Lets the node back off for `fail_time` seconds in the current
        process.

        Args:
            node (str): The node.
        """
        until = self._readiness.set_failing(node, self.get_fail_time())
        self._logger.log_event(
            "tally.node.backoff",
            {
                "name": "node",
                "node": node,
                "state": NS_BACKOFF,
                "until": until,
            })
