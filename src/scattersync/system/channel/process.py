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
"""A channel for processes forked from the same control process."""
import multiprocessing
import queue

from scattersync.system.base import (
    L_LOCAL,
    Locality,
    MESSAGE_TYPES,
    MessageType,
)
from scattersync.system.channel.channel import (
    Channel,
    ChannelError,
    ChannelFullError,
)


class ProcessChannel(Channel):
    """A channel backed by multiprocessing queues and semaphores. The channel
    must be created before the worker processes are forked."""
    def __init__(self, *, nodes: list[str], capacity: int) -> None:
        super().__init__(nodes=nodes, capacity=capacity)
        ctx = multiprocessing.get_context("fork")
        self._queues = {
            msg_type: ctx.Queue(maxsize=capacity)
            for msg_type in MESSAGE_TYPES
        }
        self._locks = {
            node: ctx.BoundedSemaphore(1)
            for node in self.get_nodes()
        }

    @staticmethod
    def locality() -> Locality:
        return L_LOCAL

    def send(self, msg_type: MessageType, payload: str) -> None:
        self.ensure_open()
        try:
            self._queues[msg_type].put_nowait(payload)
        except queue.Full as exc:
            raise ChannelFullError(
                f"channel {msg_type} is at capacity "
                f"{self.get_capacity()}") from exc
        except (OSError, ValueError) as exc:
            raise ChannelError(f"cannot send on {msg_type}") from exc

    def receive(
            self,
            msg_type: MessageType,
            *,
            timeout: float | None) -> str | None:
        self.ensure_open()
        try:
            return self._queues[msg_type].get(block=True, timeout=timeout)
        except queue.Empty:
            return None
        except (EOFError, OSError, ValueError) as exc:
            raise ChannelError(f"cannot receive on {msg_type}") from exc

    def acquire(self, node: str, *, timeout: float | None) -> bool:
        self.ensure_node(node)
        return self._locks[node].acquire(block=True, timeout=timeout)

    def release(self, node: str) -> None:
        self.ensure_node(node)
        try:
            self._locks[node].release()
        except ValueError as exc:
            raise ChannelError(f"lock of {node} was not held") from exc

    def do_close(self) -> None:
        for cur in self._queues.values():
            cur.close()
            cur.cancel_join_thread()
