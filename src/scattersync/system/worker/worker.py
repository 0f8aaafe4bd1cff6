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
"""The base of push and pull workers."""
from scattersync.system.base import (
    RES_FAIL,
    ResultStatus,
    TransferMode,
)
from scattersync.system.channel.channel import Channel, ChannelError
from scattersync.system.config.config import Config
from scattersync.system.logger.context import add_context
from scattersync.system.worker.loop import Loop


class Worker(Loop):
    """A worker receives tasks of its transfer mode, processes them, and
    reports a result for every received task."""
    def __init__(
            self,
            config: Config,
            channel: Channel,
            ident: str,
            *,
            receive_timeout: float | None = None) -> None:
        """
        Creates a worker.

        Args:
            config (Config): The configuration of the process.
            channel (Channel): The channel connecting all processes.
            ident (str): The identity of the process.
            receive_timeout (float | None, optional): The maximum time to wait
                for a task per iteration. If None, the worker waits
                indefinitely. Defaults to None.
        """
        super().__init__(config, channel, ident)
        self._receive_timeout = receive_timeout

    @staticmethod
    def get_mode() -> TransferMode:
        """
        The transfer mode of the tasks this worker processes.

        Returns:
            TransferMode: The transfer mode.
        """
        raise NotImplementedError()

    def process_task(
            self,
            node: str,
            batches: list[str]) -> tuple[ResultStatus, float]:
        """
        Processes one task.

        Args:
            node (str): The node.
            batches (list[str]): The batch file names of the bulk.

        Returns:
            tuple[ResultStatus, float]: The result of the task and the time
                to sleep before receiving the next task.
        """
        raise NotImplementedError()

    def run_once(self) -> float:
        config = self._config
        logger = config.get_logger()
        mode = self.get_mode()
        try:
            task = self._channel.receive_task(
                mode, timeout=self._receive_timeout)
        except ChannelError:
            logger.log_error(
                f"error.worker.{mode}.receive",
                "channel_receive",
                message="cannot pop from queue, putting worker to sleep")
            return config.get_fail_time()
        if task is None:
            return 0.0
        node = task["node"]
        batches = task["batches"]
        with add_context({"node": node, "mode": mode}):
            try:
                result, sleep = self.process_task(node, batches)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.log_error(
                    f"error.worker.{mode}.task",
                    "general_exception",
                    message=f"error while processing {batches}")
                result = RES_FAIL
                sleep = config.get_fail_time()
            self.report(node, batches, result)
        return sleep

    def report(
            self, node: str, batches: list[str], result: ResultStatus) -> None:
        """
        Reports the result of a task to the scheduler.

        Args:
            node (str): The node.
            batches (list[str]): The batch file names of the bulk.
            result (ResultStatus): The result.
        """
        logger = self._config.get_logger()
        mode = self.get_mode()
        logger.log_event(
            f"tally.task.{mode}",
            {
                "name": "task",
                "action": "done",
                "node": node,
                "mode": mode,
                "batches": batches,
                "result": result,
            })
        try:
            self._channel.send_result(node, result)
        except ChannelError:
            logger.log_error(
                f"error.worker.{mode}.send",
                "channel_send",
                message=f"cannot report {result} for {node}")
