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
"""The channel interface and its typed messages."""
import contextlib
from collections.abc import Callable, Iterator
from typing import TypedDict

from scattersync.system.base import (
    Module,
    MSG_RESULT,
    MessageType,
    ResultStatus,
    to_message_type,
    to_result_status,
    TransferMode,
)
from scattersync.system.util import json_compact, json_read


class ChannelError(Exception):
    """The channel is unreachable, closed, or misused."""


class ChannelFullError(ChannelError):
    """The channel for a message type is at capacity. This indicates that the
    capacity is configured too small for the scheduling budget."""


TaskMessage = TypedDict('TaskMessage', {
    "node": str,
    "batches": list[str],
})
"""A task for a push or pull worker: transfer the given batch file names of
the node's directory."""


ResultMessage = TypedDict('ResultMessage', {
    "node": str,
    "result": ResultStatus,
})
"""The outcome of a task."""


class Channel(Module):
    """A bounded channel with typed messages and per node locks."""
    def __init__(self, *, nodes: list[str], capacity: int) -> None:
        """
        Creates the channel. This must happen before worker processes are
        started.

        Args:
            nodes (list[str]): The nodes for which locks are provided.
            capacity (int): The maximum number of pending messages per message
                type.
        """
        if capacity < 1:
            raise ValueError(f"capacity must be positive: {capacity}")
        self._nodes = list(nodes)
        self._capacity = capacity
        self._closed = False

    def get_nodes(self) -> list[str]:
        return list(self._nodes)

    def get_capacity(self) -> int:
        """
        The maximum number of pending messages per message type.

        Returns:
            int: The capacity.
        """
        return self._capacity

    def is_closed(self) -> bool:
        """
        Whether the channel has been closed by the current process.

        Returns:
            bool: True, if the channel is closed.
        """
        return self._closed

    def ensure_open(self) -> None:
        """
        Ensures that the channel is still open.

        Raises:
            ChannelError: If the channel has been closed.
        """
        if self._closed:
            raise ChannelError("channel is closed")

    def ensure_node(self, node: str) -> None:
        """
        Ensures that the node has a lock.

        Args:
            node (str): The node.

        Raises:
            ChannelError: If the node is unknown to the channel.
        """
        if node not in self._nodes:
            raise ChannelError(f"no lock for unknown node {node}")

    def send(self, msg_type: MessageType, payload: str) -> None:
        """
        Sends a message without blocking.

        Args:
            msg_type (MessageType): The message type.
            payload (str): The message.

        Raises:
            ChannelFullError: If the channel is at capacity for the type.
            ChannelError: If the channel is closed or unreachable.
        """
        raise NotImplementedError()

    def receive(
            self,
            msg_type: MessageType,
            *,
            timeout: float | None) -> str | None:
        """
        Blocks until a message of exactly the given type is available.
        Messages of other types stay in the channel.

        Args:
            msg_type (MessageType): The message type.
            timeout (float | None): The maximum time to wait in seconds. If
                None, the call waits indefinitely.

        Raises:
            ChannelError: If the channel is closed or unreachable.

        Returns:
            str | None: The message or None if the timeout was reached.
        """
        raise NotImplementedError()

    def acquire(self, node: str, *, timeout: float | None) -> bool:
        """
        Acquires the exclusive lock of the node. Signals received while
        waiting do not end the call early. If the lock cannot be acquired in
        time the caller has to try again.

        Args:
            node (str): The node.
            timeout (float | None): The maximum time to wait in seconds. If
                None, the call waits until acquired.

        Raises:
            ChannelError: If the node is unknown or the channel is unreachable.

        Returns:
            bool: True, if the lock has been acquired.
        """
        raise NotImplementedError()

    def release(self, node: str) -> None:
        """
        Releases the exclusive lock of the node.

        Args:
            node (str): The node.

        Raises:
            ChannelError: If the node is unknown, the lock was not held, or
                the channel is unreachable.
        """
        raise NotImplementedError()

    def do_close(self) -> None:
        """
        Removes all backing resources of the channel. This is only called
        once.
        """
        raise NotImplementedError()

    def close(self) -> None:
        """
        Closes the channel and removes all backing resources. Repeated calls
        have no effect.
        """
        if self._closed:
            return
        self._closed = True
        self.do_close()

    @contextlib.contextmanager
    def hold(
            self,
            node: str,
            *,
            timeout: float | None,
            on_retry: Callable[[], None]) -> Iterator[None]:
        """
        Holds the exclusive lock of the node for the duration of the resource
        block. Acquisition is retried until successful. The lock is released
        even if the block raises an exception.

        Args:
            node (str): The node.
            timeout (float | None): The maximum time to wait for one
                acquisition attempt.
            on_retry (Callable[[], None]): Called each time an acquisition
                attempt failed.
        """
        while not self.acquire(node, timeout=timeout):
            on_retry()
        try:
            yield
        finally:
            self.release(node)

    def send_task(
            self, mode: TransferMode, node: str, batches: list[str]) -> None:
        """
        Sends a task to the workers of the given mode.

        Args:
            mode (TransferMode): The transfer mode.
            node (str): The node.
            batches (list[str]): The batch file names of the bulk.
        """
        task: TaskMessage = {
            "node": node,
            "batches": batches,
        }
        self.send(to_message_type(mode), json_compact(task))

    def receive_task(
            self,
            mode: TransferMode,
            *,
            timeout: float | None = None) -> TaskMessage | None:
        """
        Waits for a task of the given mode.

        Args:
            mode (TransferMode): The transfer mode.
            timeout (float | None, optional): The maximum time to wait in
                seconds. Defaults to waiting indefinitely.

        Raises:
            ChannelError: If the message could not be received or is invalid.

        Returns:
            TaskMessage | None: The task or None on timeout.
        """
        res = self.receive(to_message_type(mode), timeout=timeout)
        if res is None:
            return None
        try:
            obj = json_read(res)
            return {
                "node": f"{obj['node']}",
                "batches": [f"{batch}" for batch in obj["batches"]],
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise ChannelError(f"invalid task message: {res}") from exc

    def send_result(self, node: str, result: ResultStatus) -> None:
        """
        Reports the outcome of a task to the scheduler.

        Args:
            node (str): The node of the task.
            result (ResultStatus): The outcome.
        """
        res: ResultMessage = {
            "node": node,
            "result": result,
        }
        self.send(MSG_RESULT, json_compact(res))

    def receive_result(
            self, *, timeout: float | None = None) -> ResultMessage | None:
        """
        Waits for the outcome of a task.

        Args:
            timeout (float | None, optional): The maximum time to wait in
                seconds. Defaults to waiting indefinitely.

        Raises:
            ChannelError: If the message could not be received or is invalid.

        Returns:
            ResultMessage | None: The result or None on timeout.
        """
        res = self.receive(MSG_RESULT, timeout=timeout)
        if res is None:
            return None
        try:
            obj = json_read(res)
            return {
                "node": f"{obj['node']}",
                "result": to_result_status(f"{obj['result']}"),
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise ChannelError(f"invalid result message: {res}") from exc
