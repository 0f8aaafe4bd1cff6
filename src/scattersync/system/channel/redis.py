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
"""A channel using redis. This allows workers to run on other hosts as long as
they see the same filesystem."""
import uuid

import redis as redis_lib
from redipy import Redis, RedisConfig
from redipy.api import RSM_MISSING

from scattersync.system.base import (
    L_EITHER,
    Locality,
    MESSAGE_TYPES,
    MessageType,
)
from scattersync.system.channel.channel import (
    Channel,
    ChannelError,
    ChannelFullError,
)


DEFAULT_WAIT = 10.0
"""The maximum time for a single wait on redis if the caller did not provide a
timeout."""


class RedisChannel(Channel):
    """A channel backed by redis lists. Locks are keys that are only set if
    missing. The capacity check and the push are not atomic so the capacity
    can be exceeded by concurrent senders. This is acceptable since only the
    scheduler sends tasks."""
    def __init__(
            self,
            *,
            nodes: list[str],
            capacity: int,
            cfg: RedisConfig,
            lock_expire: float | None = None) -> None:
        super().__init__(nodes=nodes, capacity=capacity)
        self._redis = Redis("redis", cfg=cfg, redis_module="channel")
        self._lock_expire = lock_expire
        self._tokens: dict[str, str] = {}

    @staticmethod
    def locality() -> Locality:
        return L_EITHER

    @staticmethod
    def _queue_key(msg_type: MessageType) -> str:
        return f"queue:{msg_type}"

    @staticmethod
    def _lock_key(node: str) -> str:
        return f"lock:{node}"

    @staticmethod
    def _signal_key(name: str) -> str:
        return f"signal:{name}"

    def send(self, msg_type: MessageType, payload: str) -> None:
        self.ensure_open()
        key = self._queue_key(msg_type)
        try:
            if self._redis.llen(key) >= self.get_capacity():
                raise ChannelFullError(
                    f"channel {msg_type} is at capacity "
                    f"{self.get_capacity()}")
            self._redis.rpush(key, payload)
            self._redis.publish(self._signal_key(msg_type), "send")
        except redis_lib.RedisError as exc:
            raise ChannelError(f"cannot send on {msg_type}") from exc

    def receive(
            self,
            msg_type: MessageType,
            *,
            timeout: float | None) -> str | None:
        self.ensure_open()
        key = self._queue_key(msg_type)
        redis = self._redis

        def pop() -> str | None:
            return redis.lpop(key)

        try:
            res = pop()
            while res is None:
                wait = DEFAULT_WAIT if timeout is None else timeout
                res = redis.wait_for(self._signal_key(msg_type), pop, wait)
                if timeout is not None:
                    break
            return res
        except redis_lib.RedisError as exc:
            raise ChannelError(f"cannot receive on {msg_type}") from exc

    def acquire(self, node: str, *, timeout: float | None) -> bool:
        self.ensure_node(node)
        key = self._lock_key(node)
        token = uuid.uuid4().hex
        redis = self._redis

        def try_lock() -> bool | None:
            if redis.set_value(
                    key,
                    token,
                    mode=RSM_MISSING,
                    expire_in=self._lock_expire):
                return True
            return None

        try:
            res = try_lock()
            if res is None:
                wait = DEFAULT_WAIT if timeout is None else timeout
                res = redis.wait_for(self._signal_key(key), try_lock, wait)
        except redis_lib.RedisError as exc:
            raise ChannelError(f"cannot acquire lock of {node}") from exc
        if not res:
            return False
        self._tokens[node] = token
        return True

    def release(self, node: str) -> None:
        self.ensure_node(node)
        key = self._lock_key(node)
        token = self._tokens.pop(node, None)
        if token is None:
            raise ChannelError(f"lock of {node} was not held")
        try:
            if self._redis.get_value(key) == token:
                self._redis.delete(key)
            self._redis.publish(self._signal_key(key), "release")
        except redis_lib.RedisError as exc:
            raise ChannelError(f"cannot release lock of {node}") from exc

    def do_close(self) -> None:
        keys = [self._queue_key(msg_type) for msg_type in MESSAGE_TYPES]
        keys.extend(self._lock_key(node) for node in self.get_nodes())
        self._redis.delete(*keys)
