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
"""The base of all long running loops of scattersync. Every process runs
exactly one loop."""
from collections.abc import Callable

from scattersync.system.channel.channel import Channel
from scattersync.system.config.config import Config
from scattersync.system.logger.context import add_context


class Loop:
    """A loop that reloads the configuration before every iteration."""
    def __init__(self, config: Config, channel: Channel, ident: str) -> None:
        """
        Creates a loop.

        Args:
            config (Config): The configuration of the process.
            channel (Channel): The channel connecting all processes.
            ident (str): The identity of the process.
        """
        self._config = config
        self._channel = channel
        self._ident = ident

    def get_ident(self) -> str:
        return self._ident

    def get_config(self) -> Config:
        return self._config

    def get_channel(self) -> Channel:
        return self._channel

    def run_once(self) -> float:
        """
        Performs one iteration of the loop.

        Returns:
            float: The time to sleep until the next iteration in seconds.
        """
        raise NotImplementedError()

    def run(self, *, is_done: Callable[[], bool] | None = None) -> None:
        """
        Runs the loop. Errors in an iteration are logged and the loop
        continues after `fail_time`.

        Args:
            is_done (Callable[[], bool] | None, optional): Checked before every
                iteration. If None, the loop runs forever. Defaults to None.
        """
        config = self._config
        logger = config.get_logger()
        ident = self._ident
        with add_context({"process": ident}):
            logger.log_event(
                "tally.process.start",
                {
                    "name": "process",
                    "action": "start",
                    "ident": ident,
                })
            try:
                while is_done is None or not is_done():
                    config.reload(ident)
                    try:
                        sleep = self.run_once()
                    except Exception:  # pylint: disable=broad-exception-caught
                        logger.log_error(
                            f"error.loop.{ident.split()[0]}",
                            "general_exception",
                            message=f"{ident} loop")
                        sleep = config.get_fail_time()
                    config.do_sleep(sleep)
            finally:
                logger.log_event(
                    "tally.process.stop",
                    {
                        "name": "process",
                        "action": "stop",
                        "ident": ident,
                    })
