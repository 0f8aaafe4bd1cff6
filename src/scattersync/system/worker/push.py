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
"""The push worker ships batches to a node. Multiple push workers can run at
the same time but the lock of a node guarantees that only one of them
transfers to the node at any time."""
import os

from scattersync.system.base import (
    MODE_PUSH,
    RES_FAIL,
    RES_SUCCESS,
    ResultStatus,
    TransferMode,
)
from scattersync.system.channel.channel import Channel
from scattersync.system.command.transfer import sync_data_batch
from scattersync.system.config.config import Config, push_ident
from scattersync.system.io import ensure_folder, remove_file
from scattersync.system.worker.worker import Worker


class PushWorker(Worker):
    """Transfers local batches to a node and removes them afterwards."""
    def __init__(
            self,
            config: Config,
            channel: Channel,
            index: int,
            *,
            receive_timeout: float | None = None,
            lock_timeout: float | None = None) -> None:
        super().__init__(
            config,
            channel,
            push_ident(index),
            receive_timeout=receive_timeout)
        self._lock_timeout = lock_timeout

    @staticmethod
    def get_mode() -> TransferMode:
        return MODE_PUSH

    def process_task(
            self,
            node: str,
            batches: list[str]) -> tuple[ResultStatus, float]:
        config = self._config
        logger = config.get_logger()
        folder = ensure_folder(config.get_mode_dir(MODE_PUSH, node))

        def on_retry() -> None:
            logger.log_lazy(
                "debug.worker.lock",
                lambda: {
                    "name": "notice",
                    "message": f"cannot acquire lock for {node}, retrying",
                })
            config.do_sleep(config.get_fail_time())

        with self._channel.hold(
                node, timeout=self._lock_timeout, on_retry=on_retry):
            try:
                success = sync_data_batch(config, node, batches, MODE_PUSH)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.log_error(
                    "error.worker.push.sync",
                    "transfer",
                    message=f"error while syncing {node} {batches}")
                success = False
        if success and not config.is_dry_run():
            for batch in batches:
                batch_file = os.path.join(folder, batch)
                try:
                    remove_file(batch_file)
                except OSError:
                    logger.log_error(
                        "error.worker.push.unlink",
                        "unlink",
                        message=(
                            f"could not unlink {batch_file}, "
                            "will be retried"))
                    success = False
                    continue
                logger.log_event(
                    "debug.batch.delete",
                    {
                        "name": "batch",
                        "action": "delete",
                        "batch": batch_file,
                    })
        return (RES_SUCCESS if success else RES_FAIL), 0.0
