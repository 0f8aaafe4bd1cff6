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
"""The pull worker fetches data changes from a node. Afterwards, the batches
are moved into the staging root so that the relay forwards them to the other
nodes."""
import os

from scattersync.system.base import (
    MODE_PULL,
    RES_FAIL,
    RES_SUCCESS,
    ResultStatus,
    TransferMode,
)
from scattersync.system.batch.links import backup_batches
from scattersync.system.channel.channel import Channel
from scattersync.system.command.transfer import sync_data_batch
from scattersync.system.config.config import Config, IDENT_PULL
from scattersync.system.io import ensure_folder, move_file
from scattersync.system.worker.worker import Worker


class PullWorker(Worker):
    """Applies pulled batches locally and promotes them afterwards."""
    def __init__(
            self,
            config: Config,
            channel: Channel,
            *,
            receive_timeout: float | None = None) -> None:
        super().__init__(
            config, channel, IDENT_PULL, receive_timeout=receive_timeout)

    @staticmethod
    def get_mode() -> TransferMode:
        return MODE_PULL

    def process_task(
            self,
            node: str,
            batches: list[str]) -> tuple[ResultStatus, float]:
        config = self._config
        logger = config.get_logger()
        folder = ensure_folder(config.get_mode_dir(MODE_PULL, node))
        if not sync_data_batch(config, node, batches, MODE_PULL):
            logger.log_error(
                "error.worker.pull.sync",
                "transfer",
                message="cannot sync batches, putting worker to sleep")
            return RES_FAIL, config.get_fail_time()
        backup_batches(
            config, MODE_PULL, node, folder, batches, self.get_ident())
        if config.is_dry_run():
            return RES_SUCCESS, 0.0
        batch_dir = config.get_batch_dir()
        for batch in batches:
            batch_file = os.path.join(folder, batch)
            dest_file = os.path.join(batch_dir, batch)
            try:
                move_file(batch_file, dest_file)
            except OSError:
                logger.log_error(
                    "error.worker.pull.move",
                    "rename",
                    message=(
                        f"cannot move pulled batch {batch_file} into "
                        f"{dest_file}, the batch will be retried"))
                return RES_FAIL, 0.0
            logger.log_event(
                "debug.batch.move",
                {
                    "name": "batch",
                    "action": "move",
                    "batch": batch_file,
                    "target": dest_file,
                })
        return RES_SUCCESS, 0.0
