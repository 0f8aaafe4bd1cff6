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
"""The scheduler decides which batches are transferred. Each pass groups the
pending batches of every ready node into bulks and distributes at most a
fixed number of tasks, at most one per node. Then it waits for the results of
all tasks it has sent before the next pass. This bounds the number of tasks
in flight and keeps the batches of a node in order."""
import os

from scattersync.system.base import RES_FAIL, TRANSFER_MODES, TransferMode
from scattersync.system.batch.bulk import group_bulks
from scattersync.system.channel.channel import Channel, ChannelError
from scattersync.system.config.config import Config, IDENT_SCHED
from scattersync.system.io import ensure_folder, get_mtime, listdir_head
from scattersync.system.logger.context import add_context
from scattersync.system.worker.loop import Loop


Round = list[tuple[str, list[str]]]
"""The i-th bulk of every node that has at least i + 1 bulks."""


class Scheduler(Loop):
    """Schedules push and pull tasks. The scheduler runs in the control
    process."""
    def __init__(self, config: Config, channel: Channel) -> None:
        super().__init__(config, channel, IDENT_SCHED)
        self._next_node: dict[TransferMode, int] = {
            mode: 0
            for mode in TRANSFER_MODES
        }

    def get_cursor(self, mode: TransferMode) -> int:
        return self._next_node[mode]

    def run_once(self) -> float:
        config = self._config
        if not config.check_file():
            return config.get_fail_time()
        sleep = config.get_scan_time()
        for mode in TRANSFER_MODES:
            to_schedule = config.get_schedule_count(mode)
            rem = self.schedule_batches(mode, to_schedule)
            if rem < to_schedule:
                sleep = 0.0
            self.wait_complete(to_schedule - rem)
        return sleep

    def collect_rounds(self, mode: TransferMode) -> list[Round]:
        """
        Groups the pending batches of all ready nodes into bulks. The listing
        of each folder is limited to twice the bulk cap and is not sorted.
        Nodes whose folder cannot be read are set to failing.

        Args:
            mode (TransferMode): The transfer mode.

        Returns:
            list[Round]: The rounds of bulks.
        """
        config = self._config
        logger = config.get_logger()
        now = config.get_readiness().now()
        rounds: list[Round] = []
        for node in config.get_node_names():
            if not config.is_ready(node):
                continue
            folder = config.get_mode_dir(mode, node)
            cap = config.get_bulk_cap(node)
            try:
                ensure_folder(folder)
                names = listdir_head(folder, 2 * cap)
            except OSError:
                logger.log_error(
                    "error.scheduler.folder",
                    "directory",
                    message=(
                        f"cannot open {folder}, will retry in "
                        f"{config.get_fail_time()} seconds"))
                config.set_failing(node)
                continue

            def on_unreadable(name: str, exc: OSError) -> None:
                logger.log_warning(
                    "warn.scheduler.mtime",
                    f"cannot get mtime of {name}, assuming new bulk: {exc}")

            bulks = group_bulks(
                names,
                get_mtime=lambda name: get_mtime(os.path.join(folder, name)),
                now=now,
                older_than=config.get_bulk_older_than(),
                cap=cap,
                on_unreadable=on_unreadable)
            for ix, bulk in enumerate(bulks):
                if ix >= len(rounds):
                    rounds.append([])
                rounds[ix].append((node, bulk))
        return rounds

    def schedule_batches(self, mode: TransferMode, to_schedule: int) -> int:
        """
        Sends tasks for the given mode. Rounds are processed in order and
        nodes within a round are selected round robin starting at the
        persistent cursor of the mode. A node gets at most one task per call.

        Args:
            mode (TransferMode): The transfer mode.
            to_schedule (int): The maximum number of tasks to send.

        Returns:
            int: The number of tasks that could not be scheduled.
        """
        config = self._config
        logger = config.get_logger()
        channel = self._channel
        scheduled: set[str] = set()
        for row in self.collect_rounds(mode):
            if to_schedule <= 0:
                break
            width = len(row)
            for _ in range(width):
                if to_schedule <= 0:
                    break
                node, bulk = row[self._next_node[mode] % width]
                self._next_node[mode] += 1
                if node in scheduled:
                    continue
                with add_context({"node": node, "mode": mode}):
                    try:
                        channel.send_task(mode, node, bulk)
                    except ChannelError:
                        logger.log_error(
                            "error.scheduler.send",
                            "channel_send",
                            message=f"error scheduling task {node} {bulk}")
                        continue
                    logger.log_event(
                        "tally.task.schedule",
                        {
                            "name": "task",
                            "action": "schedule",
                            "node": node,
                            "mode": mode,
                            "batches": bulk,
                        })
                to_schedule -= 1
                scheduled.add(node)
        return to_schedule

    def wait_complete(self, count: int) -> None:
        """
        Waits for exactly the given number of results. Nodes of failed tasks
        are set to failing. Channel errors are retried after `fail_time`.

        Args:
            count (int): The number of results to wait for.
        """
        config = self._config
        logger = config.get_logger()
        while count > 0:
            try:
                res = self._channel.receive_result()
            except ChannelError:
                logger.log_error(
                    "error.scheduler.receive",
                    "channel_receive",
                    message="error waiting for completion")
                config.do_sleep(config.get_fail_time())
                continue
            if res is None:
                continue
            node = res["node"]
            logger.log_event(
                "tally.task.complete",
                {
                    "name": "task",
                    "action": "complete",
                    "node": node,
                    "result": res["result"],
                })
            if res["result"] == RES_FAIL:
                config.set_failing(node)
            count -= 1
