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
"""The relay fans new local batches out to the push folders of all nodes and
pulls the batches that other nodes prepared for us. It runs on its own timer
without involvement of the scheduler."""
import os

from scattersync.system.base import MODE_PULL, MODE_PUSH
from scattersync.system.batch.links import (
    backup_batches,
    ensure_folder_until_done,
    link_until_done,
)
from scattersync.system.batch.naming import parse_local_batch
from scattersync.system.channel.channel import Channel
from scattersync.system.command.command import (
    execute_command,
    PH_DEST,
    PH_SOURCE,
)
from scattersync.system.config.config import Config, IDENT_RELAY
from scattersync.system.io import ensure_folder, listdir, remove_file
from scattersync.system.logger.context import add_context
from scattersync.system.worker.loop import Loop


class Relay(Loop):
    """The enqueue and relay loop."""
    def __init__(self, config: Config, channel: Channel) -> None:
        super().__init__(config, channel, IDENT_RELAY)

    def run_once(self) -> float:
        config = self._config
        if not config.check_file():
            return config.get_fail_time()
        if not self.link_local_batches() or not self.pull_remote_batches():
            return config.get_fail_time()
        return config.get_scan_time()

    def link_local_batches(self) -> bool:
        """
        Hard links every local batch of the staging root into the push
        folder of every node except its origin. The original is only removed
        after all links exist. The staging root is processed in sorted order.
        Running this again on an unchanged folder has no effect.

        Returns:
            bool: False if the staging root cannot be read.
        """
        config = self._config
        logger = config.get_logger()
        ident = self.get_ident()
        batch_dir = config.get_batch_dir()
        try:
            names = listdir(batch_dir)
        except OSError:
            logger.log_error(
                "error.relay.scan",
                "directory",
                message=(
                    f"cannot scan {batch_dir}, will retry in "
                    f"{config.get_fail_time()} seconds"))
            return False
        nodes = config.get_node_names()
        if not nodes:
            return True
        for name in names:
            origin = parse_local_batch(name)
            if origin is None:
                continue
            batch_file = os.path.join(batch_dir, name)
            for node in nodes:
                if node == origin:
                    continue
                node_dir = ensure_folder_until_done(
                    config, config.get_mode_dir(MODE_PUSH, node), ident)
                link_until_done(
                    config, batch_file, os.path.join(node_dir, name), ident)
                backup_batches(
                    config, MODE_PUSH, node, batch_dir, [name], ident)
            try:
                remove_file(batch_file)
            except OSError:
                logger.log_error(
                    "error.relay.unlink",
                    "unlink",
                    message=f"could not unlink {batch_file}, will be retried")
                continue
            logger.log_event(
                "debug.batch.unlink",
                {
                    "name": "batch",
                    "action": "unlink",
                    "batch": batch_file,
                })
        return True

    def pull_remote_batches(self) -> bool:
        """
        Pulls the prepared batches of every ready node. Nodes that fail are
        set to failing.

        Returns:
            bool: Always True. Failures are tracked per node.
        """
        config = self._config
        for node in config.get_node_names():
            if not config.is_ready(node):
                continue
            with add_context({"node": node, "mode": MODE_PULL}):
                if not self.pull_batches(node):
                    config.set_failing(node)
        return True

    def pull_batches(self, node: str) -> bool:
        """
        Runs the pull batches command for a node. Nothing happens if either
        the command or the batch source of the node is not configured.

        Args:
            node (str): The node.

        Returns:
            bool: Whether the batches were pulled successfully.
        """
        config = self._config
        logger = config.get_logger()
        command = config.get_pull_batches_command()
        node_obj = config.get_node(node)
        if command is None or node_obj is None:
            return True
        source = node_obj.get_batches()
        if source is None:
            return True
        folder = config.get_mode_dir(MODE_PULL, node)
        try:
            ensure_folder(folder)
        except OSError:
            logger.log_error(
                "error.relay.folder",
                "directory",
                message=f"cannot create {folder}")
            return False
        if not execute_command(
                config, command, {PH_SOURCE: source, PH_DEST: folder}):
            logger.log_error(
                "error.relay.pull",
                "transfer",
                message=(
                    f"pull batches from {node} failed, will retry in "
                    f"{config.get_fail_time()} seconds"))
            return False
        logger.log_lazy(
            "debug.relay.pull",
            lambda: {
                "name": "notice",
                "message": f"pull batches from {node} succeeded",
            })
        return True
