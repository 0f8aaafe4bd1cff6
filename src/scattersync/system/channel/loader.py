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
"""Loads a channel."""
from typing import Literal, TypedDict

from redipy import RedisConfig
from typing_extensions import NotRequired

from scattersync.system.channel.channel import Channel
from scattersync.system.plugins import create_plugin, is_plugin_name


ProcessChannelModule = TypedDict('ProcessChannelModule', {
    "name": Literal["process"],
    "capacity": NotRequired[int],
})
"""Configuration for a channel between forked processes. `capacity` is the
maximum number of pending messages per message type."""
RedisChannelModule = TypedDict('RedisChannelModule', {
    "name": Literal["redis"],
    "cfg": RedisConfig,
    "capacity": NotRequired[int],
    "lock_expire": NotRequired[float],
})
"""Configuration for a redis channel. `cfg` are the redis connection
settings. `lock_expire` makes node locks expire after the given number of
seconds in case a worker dies while holding a lock."""


ChannelModule = ProcessChannelModule | RedisChannelModule
"""Channel configuration."""


DEFAULT_CHANNEL: ChannelModule = {
    "name": "process",
}
"""The default channel."""


def load_channel(
        module: ChannelModule,
        *,
        nodes: list[str],
        default_capacity: int) -> Channel:
    """
    Loads a channel from a given configuration. `name` can be python module
    fully qualified name instead to load a channel via plugin.

    Args:
        module (ChannelModule): The configuration.
        nodes (list[str]): The nodes that need locks.
        default_capacity (int): The capacity if the configuration doesn't
            specify one.

    Raises:
        ValueError: If the configuration is invalid.

    Returns:
        Channel: The channel.
    """
    # pylint: disable=import-outside-toplevel
    if is_plugin_name(module["name"]):
        kwargs = dict(module)
        kwargs.setdefault("capacity", default_capacity)
        return create_plugin(Channel, kwargs, nodes=nodes)
    capacity = module.get("capacity", default_capacity)
    if module["name"] == "process":
        from scattersync.system.channel.process import ProcessChannel
        return ProcessChannel(nodes=nodes, capacity=capacity)
    if module["name"] == "redis":
        from scattersync.system.channel.redis import RedisChannel
        return RedisChannel(
            nodes=nodes,
            capacity=capacity,
            cfg=module["cfg"],
            lock_expire=module.get("lock_expire"))
    raise ValueError(f"unknown channel: {module['name']}")
