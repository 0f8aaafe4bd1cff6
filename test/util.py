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
"""Utility functions for unit tests."""
import contextlib
import os
import threading
import time
import uuid
from collections.abc import Iterator
from typing import Any, cast

from redipy import RedisConfig

from scattersync.system.channel.process import ProcessChannel
from scattersync.system.config.config import Config, IDENT_SCHED
from scattersync.system.config.loader import load_test, SyncConfigJSON
from scattersync.system.logger.event import EventInfo
from scattersync.system.logger.log import EventListener
from scattersync.system.node.node import NodeJSON
from scattersync.system.util import is_partial_match, to_bool


TEST_SALT_LOCK = threading.RLock()
"""Lock to ensure each test using redis gets a different salt for keys."""
TEST_SALT: dict[str, str] = {}
"""A dictionary of test salts by test name."""


def is_redis_enabled() -> bool:
    """
    Whether tests against a redis server are enabled. The server is
    expected at the port returned by `get_test_redis_config`.

    Returns:
        bool: True, if the `REDIS_TEST` environment variable is set.
    """
    return to_bool(os.getenv("REDIS_TEST"))


def get_test_redis_config() -> RedisConfig:
    """
    Get the redis connection details for test cases. Each test uses its own
    key prefix.

    Returns:
        RedisConfig: The redis connection details.
    """
    test_id = os.getenv("PYTEST_CURRENT_TEST", "")
    with TEST_SALT_LOCK:
        salt = TEST_SALT.get(test_id)
        if salt is None:
            salt = f"salt:{uuid.uuid4().hex}"
            TEST_SALT[test_id] = salt
    return {
        "host": "localhost",
        "port": int(os.getenv("REDIS_TEST_PORT", "6380")),
        "passwd": "",
        "prefix": f"test:{salt}",
        "path": "userdata/test/",
    }


class EventCollector(EventListener):
    """Collects all events for inspection."""
    def __init__(self, *, disable_events: list[str] | None = None) -> None:
        super().__init__(disable_events=disable_events)
        self.events: list[EventInfo] = []

    def log_event(self, event: EventInfo) -> None:
        self.events.append(event)

    def get_names(self) -> list[str]:
        return [event["name"] for event in self.events]

    def get_events(self, prefix: str) -> list[EventInfo]:
        """
        Get all events matching the given name prefix.

        Args:
            prefix (str): The prefix. Only full segments match.

        Returns:
            list[EventInfo]: The events.
        """
        return [
            event
            for event in self.events
            if is_partial_match(event["name"], prefix)
        ]

    def has_event(self, prefix: str) -> bool:
        return len(self.get_events(prefix)) > 0

    def get_messages(self, prefix: str) -> list[str]:
        return [
            f"{event['event'].get('message', '')}"
            for event in self.get_events(prefix)
        ]


class FakeClock:
    """A manually advanced clock."""
    def __init__(self, start: float = 1000.0) -> None:
        self._now = start

    def __call__(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds


class SleepRecorder:
    """Records sleeps instead of sleeping."""
    def __init__(self) -> None:
        self.sleeps: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.sleeps.append(seconds)


def make_config_obj(
        base: str,
        *,
        nodes: dict[str, NodeJSON] | None = None,
        **kwargs: Any) -> SyncConfigJSON:
    """
    Creates a configuration for a test. All folders and the checkfile are
    created below the base folder.

    Args:
        base (str): The base folder.
        nodes (dict[str, NodeJSON] | None, optional): The nodes. Defaults to
            the nodes `alpha` and `beta`.
        **kwargs (Any): Overrides of configuration fields.

    Returns:
        SyncConfigJSON: The configuration.
    """
    batch_dir = os.path.join(base, "batches")
    data_dir = os.path.join(base, "data")
    checkfile = os.path.join(base, "checkfile")
    os.makedirs(batch_dir, exist_ok=True)
    os.makedirs(data_dir, exist_ok=True)
    with open(checkfile, "wb") as fout:
        fout.flush()
    if nodes is None:
        nodes = {
            "alpha": {"data": "alpha:/srv/data"},
            "beta": {"data": "beta:/srv/data"},
        }
    obj: dict[str, Any] = {
        "nodes": nodes,
        "batch_dir": batch_dir,
        "data_dir": data_dir,
        "checkfile": checkfile,
        "scan_time": 5.0,
        "fail_time": 30.0,
        "bulk_older_than": 10.0,
        "bulk_max_batches": 3,
        "push_count": 2,
        "pull_count": 1,
        "push_procs": 2,
        "sync_data_rec": "true",
        "sync_data_norec": "true",
        "logger": {
            "listeners": [],
        },
    }
    obj.update(kwargs)
    return cast(SyncConfigJSON, obj)


def create_config(
        base: str,
        *,
        ident: str = IDENT_SCHED,
        clock: FakeClock | None = None,
        nodes: dict[str, NodeJSON] | None = None,
        **kwargs: Any) -> tuple[Config, EventCollector, SleepRecorder]:
    """
    Creates a configuration for a test that records events and sleeps.

    Args:
        base (str): The base folder.
        ident (str, optional): The identity of the process. Defaults to the
            scheduler.
        clock (FakeClock | None, optional): The clock for node readiness.
            Defaults to None.
        nodes (dict[str, NodeJSON] | None, optional): The nodes. Defaults to
            None.
        **kwargs (Any): Overrides of configuration fields.

    Returns:
        tuple[Config, EventCollector, SleepRecorder]: The configuration, the
            event collector, and the sleep recorder.
    """
    collector = EventCollector()
    sleep = SleepRecorder()
    config = load_test(
        make_config_obj(base, nodes=nodes, **kwargs),
        ident=ident,
        listeners=[collector],
        clock=clock,
        sleep=sleep)
    return config, collector, sleep


@contextlib.contextmanager
def open_channel(
        config: Config,
        *,
        capacity: int | None = None) -> Iterator[ProcessChannel]:
    """
    Creates a channel for the nodes of the configuration and closes it after
    the resource block.

    Args:
        config (Config): The configuration.
        capacity (int | None, optional): The capacity. Defaults to the
            capacity derived from the configuration.

    Yields:
        ProcessChannel: The channel.
    """
    channel = ProcessChannel(
        nodes=config.get_node_names(),
        capacity=(
            config.get_default_capacity() if capacity is None else capacity))
    try:
        yield channel
    finally:
        channel.close()


def write_batch(
        folder: str,
        name: str,
        content: bytes = b"record\n",
        *,
        age: float = 60.0) -> str:
    """
    Writes a batch file with a modification time in the past.

    Args:
        folder (str): The folder. It is created if necessary.
        name (str): The file name.
        content (bytes, optional): The content. Defaults to b"record\\n".
        age (float, optional): How old the file is in seconds. Defaults to
            60.0.

    Returns:
        str: The path of the batch file.
    """
    os.makedirs(folder, exist_ok=True)
    fname = os.path.join(folder, name)
    with open(fname, "wb") as fout:
        fout.write(content)
    mtime = time.time() - age
    os.utime(fname, (mtime, mtime))
    return fname


def list_batches(folder: str) -> list[str]:
    """
    Lists all batch files of a folder.

    Args:
        folder (str): The folder.

    Returns:
        list[str]: The sorted batch file names. Empty if the folder does not
            exist.
    """
    if not os.path.isdir(folder):
        return []
    return sorted(
        name for name in os.listdir(folder) if name.endswith(".batch"))
