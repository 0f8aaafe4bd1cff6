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
"""Transfers bulks of batches using the configured transfer commands."""
import os

from scattersync.system.base import MODE_PUSH, TransferMode
from scattersync.system.batch.merge import merge_batches
from scattersync.system.batch.naming import get_batch_type, is_rec_type
from scattersync.system.command.command import (
    execute_command,
    PH_BATCH,
    PH_DEST,
    PH_SOURCE,
)
from scattersync.system.config.config import Config
from scattersync.system.io import read_bytes


STDIN_BATCH = "-"
"""Indicates that the batch is provided through stdin."""


def sync_data_batch(
        config: Config,
        node: str,
        batches: list[str],
        mode: TransferMode) -> bool:
    """
    Transfers a bulk of batches from or to a node. A single batch is passed
    as file. Multiple batches are merged and passed through stdin. The type
    of the last batch decides the transfer command.

    Args:
        config (Config): The configuration.
        node (str): The node.
        batches (list[str]): The batch file names in the push or pull folder
            of the node.
        mode (TransferMode): The transfer mode.

    Returns:
        bool: Whether the transfer succeeded.
    """
    logger = config.get_logger()
    logger.log_lazy(
        "debug.task.process",
        lambda: {
            "name": "task",
            "action": "process",
            "node": node,
            "mode": mode,
            "batches": batches,
        })
    node_obj = config.get_node(node)
    if node_obj is None:
        logger.log_error(
            "error.transfer.node",
            "config",
            message=(
                f"empty configuration for {node}, will retry batches "
                f"{batches} in {config.get_fail_time()} seconds"))
        return False
    if not batches:
        return True
    folder = config.get_mode_dir(mode, node)
    batches_type = ""
    for batch in batches:
        cur_type = get_batch_type(batch)
        if cur_type is None:
            logger.log_error(
                "alert.transfer.batch",
                "invalid_batch",
                message=(
                    "invalid batch filename format "
                    f"{os.path.join(folder, batch)}"))
            return False
        batches_type = cur_type
    input_data = b""
    if len(batches) == 1:
        batch_file = os.path.join(folder, batches[0])
    else:
        batch_file = STDIN_BATCH
        try:
            input_data = merge_batches([
                read_bytes(os.path.join(folder, batch)) for batch in batches
            ])
        except OSError:
            logger.log_error(
                "error.transfer.read",
                "invalid_batch",
                message=f"cannot read batches {batches} in {folder}")
            return False
    command = config.get_sync_data_command(
        node, is_rec=is_rec_type(batches_type))
    local_data = config.get_data_dir()
    remote_data = node_obj.get_data()
    is_push = mode == MODE_PUSH
    if not execute_command(
            config,
            command,
            {
                PH_BATCH: batch_file,
                PH_SOURCE: local_data if is_push else remote_data,
                PH_DEST: remote_data if is_push else local_data,
            },
            input_data):
        logger.log_error(
            f"error.transfer.{mode}",
            "transfer",
            message=(
                f"batch {mode} execution failed, will retry batches "
                f"{batches} in {config.get_fail_time()} seconds"))
        return False
    logger.log_lazy(
        "debug.task.done",
        lambda: {
            "name": "task",
            "action": "done",
            "node": node,
            "mode": mode,
            "batches": batches,
        })
    return True
