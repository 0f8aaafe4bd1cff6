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
"""The control process. It creates the channel, starts the relay, the pull
worker, and the push workers as child processes, and runs the scheduler
itself. SIGINT and SIGTERM close the channel and terminate all children."""
import multiprocessing
import signal
import sys
from collections.abc import Callable
from types import FrameType
from typing import Any, Literal

from scattersync.system.channel.channel import Channel
from scattersync.system.channel.loader import load_channel
from scattersync.system.config.config import Config, IDENT_MAIN
from scattersync.system.config.loader import load_config
from scattersync.system.logger.context import add_context
from scattersync.system.relay.relay import Relay
from scattersync.system.scheduler.scheduler import Scheduler
from scattersync.system.worker.loop import Loop
from scattersync.system.worker.pull import PullWorker
from scattersync.system.worker.push import PushWorker


WorkerKind = Literal["relay", "pull", "push"]
"""The kinds of child processes."""


STOP_SIGNALS = [signal.SIGINT, signal.SIGTERM]
"""Signals that shut down the control process."""


def create_loop(
        config: Config,
        channel: Channel,
        kind: WorkerKind,
        index: int) -> Loop:
    """
    Creates the loop of a child process.

    Args:
        config (Config): The configuration.
        channel (Channel): The channel.
        kind (WorkerKind): The kind of the child process.
        index (int): The index of push workers.

    Returns:
        Loop: The loop.
    """
    if kind == "relay":
        return Relay(config, channel)
    if kind == "pull":
        return PullWorker(config, channel)
    return PushWorker(config, channel, index)


def _worker_main(
        config: Config,
        channel: Channel,
        kind: WorkerKind,
        index: int) -> None:
    for signum in STOP_SIGNALS:
        signal.signal(signum, signal.SIG_DFL)
    create_loop(config, channel, kind, index).run()


class Control:
    """Owns the channel and the child processes."""
    def __init__(self, config: Config) -> None:
        self._config = config
        self._channel: Channel | None = None
        self._procs: list[multiprocessing.process.BaseProcess] = []
        self._is_shutdown = False

    def get_channel(self) -> Channel:
        """
        The channel of the control process.

        Raises:
            ValueError: If the channel has not been created.

        Returns:
            Channel: The channel.
        """
        if self._channel is None:
            raise ValueError("channel not initialized")
        return self._channel

    def setup_channel(self) -> Channel:
        """
        Creates the channel. This must happen before any child process is
        started.

        Returns:
            Channel: The channel.
        """
        if self._channel is not None:
            raise ValueError("channel already initialized")
        config = self._config
        self._channel = load_channel(
            config.get_channel_module(),
            nodes=config.get_node_names(),
            default_capacity=config.get_default_capacity())
        return self._channel

    def start_workers(self) -> None:
        """
        Starts the relay, the pull worker, and all push workers.
        """
        config = self._config
        logger = config.get_logger()
        channel = self.get_channel()
        ctx = multiprocessing.get_context("fork")
        kinds: list[tuple[WorkerKind, int]] = [("relay", 0), ("pull", 0)]
        kinds.extend(("push", ix) for ix in range(config.get_push_procs()))
        for kind, index in kinds:
            proc = ctx.Process(
                target=_worker_main,
                args=(config, channel, kind, index),
                name=f"scattersync-{kind}-{index}",
                daemon=True)
            try:
                proc.start()
            except OSError:
                logger.log_error(
                    "error.control.spawn",
                    "spawn",
                    message=f"cannot start {kind} worker {index}")
                raise
            self._procs.append(proc)
            logger.log_event(
                "tally.process.start",
                {
                    "name": "process",
                    "action": "start",
                    "ident": proc.name,
                    "pid": proc.pid if proc.pid is not None else -1,
                })

    def shutdown(self) -> None:
        """
        Closes the channel and terminates all child processes. Repeated calls
        have no effect.
        """
        if self._is_shutdown:
            return
        self._is_shutdown = True
        logger = self._config.get_logger()
        if self._channel is not None:
            self._channel.close()
        for proc in self._procs:
            if proc.is_alive():
                proc.terminate()
        for proc in self._procs:
            proc.join(timeout=1.0)
        logger.log_event(
            "notice.control.shutdown",
            {
                "name": "process",
                "action": "shutdown",
                "ident": IDENT_MAIN,
            })

    def _handle_signal(self, signum: int, _frame: FrameType | None) -> None:
        self.shutdown()
        sys.exit(128 + signum)

    def run(self) -> int | None:
        """
        Runs the control process until it receives a stop signal.

        Returns:
            int | None: The exit code.
        """
        config = self._config
        logger = config.get_logger()
        with add_context({"process": IDENT_MAIN}):
            mode_str = " in dry-run mode" if config.is_dry_run() else ""
            logger.log_notice("notice.control.start", f"started{mode_str}")
            channel = self.setup_channel()
            prev_handlers: dict[int, Any] = {}
            try:
                self.start_workers()
                # children must not inherit the handlers
                for signum in STOP_SIGNALS:
                    prev_handlers[signum] = signal.signal(
                        signum, self._handle_signal)
                Scheduler(config, channel).run()
            finally:
                self.shutdown()
                for signum, handler in prev_handlers.items():
                    if handler is not None:
                        signal.signal(signum, handler)
        return None


def control_start(*, config_file: str) -> Callable[[], int | None]:
    """
    Load the configuration and prepare the control process.

    Args:
        config_file (str): The configuration file.

    Returns:
        Callable[[], int | None]: The function to execute the actual work.
            If its result is not None, then the integer should be used
            as exit code.
    """
    config = load_config(config_file)
    control = Control(config)
    return control.run
