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
"""Tracks whether nodes are ready to be processed. After a failure a node
backs off for a while and is skipped until the back off time has passed. The
state is kept per process."""
import time
from collections.abc import Callable
from typing import Literal


NodeState = Literal[
    "ready",
    "backoff",
    "waiting",
]
"""The readiness of a node."""
NS_READY: NodeState = "ready"
"""The node can be processed."""
NS_BACKOFF: NodeState = "backoff"
"""The node failed recently and is skipped until the back off expires."""
NS_WAITING: NodeState = "waiting"
"""The node is throttled for one scan interval. There is currently no code
path that puts a node into this state."""


class ReadinessTracker:
    """Keeps the readiness timers of all nodes. A node without timer is
    ready. Timers are cleared lazily when the state is checked after they
    expired."""
    def __init__(self, *, clock: Callable[[], float] | None = None) -> None:
        """
        Creates a readiness tracker where every node is ready.

        Args:
            clock (Callable[[], float] | None, optional): Returns the current
                time in seconds. Defaults to `time.time`.
        """
        self._clock = time.time if clock is None else clock
        self._timeouts: dict[str, tuple[NodeState, float]] = {}

    def now(self) -> float:
        """
        The current time.

        Returns:
            float: The current time in seconds.
        """
        return self._clock()

    def set_failing(self, node: str, fail_time: float) -> float:
        """
        Puts the node into back off after a failure.

        Args:
            node (str): The node.
            fail_time (float): The back off duration in seconds.

        Returns:
            float: The time at which the node becomes ready again.
        """
        until = self._clock() + fail_time
        self._timeouts[node] = (NS_BACKOFF, until)
        return until

    def set_waiting(self, node: str, scan_time: float) -> float:
        """
        Throttles the node for one scan interval.

        Args:
            node (str): The node.
            scan_time (float): The scan interval in seconds.

        Returns:
            float: The time at which the node becomes ready again.
        """
        until = self._clock() + scan_time
        self._timeouts[node] = (NS_WAITING, until)
        return until

    def is_ready(self, node: str) -> bool:
        """
        Whether the node is ready. An expired timer is removed.

        Args:
            node (str): The node.

        Returns:
            bool: True, if the node can be processed.
        """
        timeout = self._timeouts.get(node)
        if timeout is not None and self._clock() <= timeout[1]:
            return False
        self.clear(node)
        return True

    def get_state(self, node: str) -> tuple[NodeState, float | None]:
        """
        Retrieves the current state of the node.

        Args:
            node (str): The node.

        Returns:
            tuple[NodeState, float | None]: The state and until when the state
                lasts. The time is None for ready nodes.
        """
        if self.is_ready(node):
            return (NS_READY, None)
        state, until = self._timeouts[node]
        return (state, until)

    def clear(self, node: str) -> None:
        """
        Makes the node ready immediately.

        Args:
            node (str): The node.
        """
        self._timeouts.pop(node, None)
