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
"""Tests the control process and the command line interface."""
import json
import os
import signal
from typing import Any

import pytest

from scattersync.__main__ import run
from scattersync.app.control import Control, create_loop
from scattersync.system.channel.process import ProcessChannel
from scattersync.system.relay.relay import Relay
from scattersync.system.scheduler.scheduler import Scheduler
from scattersync.system.worker.pull import PullWorker
from scattersync.system.worker.push import PushWorker
from test.util import create_config, make_config_obj


def test_channel_setup(tmp_path: str) -> None:
    """
    Test creating and closing the channel.

    Args:
        tmp_path (str): The folder for the test.
    """
    config, collector, _ = create_config(f"{tmp_path}")
    control = Control(config)
    with pytest.raises(ValueError, match="not initialized"):
        control.get_channel()
    channel = control.setup_channel()
    assert isinstance(channel, ProcessChannel)
    assert control.get_channel() is channel
    assert channel.get_capacity() == config.get_default_capacity()
    assert channel.get_nodes() == ["alpha", "beta"]
    with pytest.raises(ValueError, match="already initialized"):
        control.setup_channel()
    control.shutdown()
    control.shutdown()
    assert channel.is_closed()
    assert len(collector.get_events("notice.control.shutdown")) == 1


def test_channel_capacity(tmp_path: str) -> None:
    """
    Test configuring the channel.

    Args:
        tmp_path (str): The folder for the test.
    """
    config, _, _ = create_config(
        f"{tmp_path}", channel={"name": "process", "capacity": 1})
    control = Control(config)
    try:
        assert control.setup_channel().get_capacity() == 1
    finally:
        control.shutdown()


def test_create_loop(tmp_path: str) -> None:
    """
    Test creating the loops of child processes.

    Args:
        tmp_path (str): The folder for the test.
    """
    config, _, _ = create_config(f"{tmp_path}")
    control = Control(config)
    channel = control.setup_channel()
    try:
        relay = create_loop(config, channel, "relay", 0)
        assert isinstance(relay, Relay)
        pull = create_loop(config, channel, "pull", 0)
        assert isinstance(pull, PullWorker)
        push = create_loop(config, channel, "push", 3)
        assert isinstance(push, PushWorker)
        assert [relay.get_ident(), pull.get_ident(), push.get_ident()] == [
            "batchq",
            "pull",
            "push 3",
        ]
    finally:
        control.shutdown()

def test_signal_handlers(
        tmp_path: str, monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Test that stop handlers are only installed after forking the workers.

    Args:
        tmp_path (str): The folder for the test.
        monkeypatch (pytest.MonkeyPatch): Replaces forking and scheduling.
    """
    config, collector, _ = create_config(f"{tmp_path}")
    control = Control(config)
    handlers: dict[str, Any] = {}
    orig_handler = signal.getsignal(signal.SIGTERM)

    def start_workers() -> None:
        handlers["fork"] = signal.getsignal(signal.SIGTERM)

    def run_scheduler(_self: Scheduler) -> None:
        handlers["schedule"] = signal.getsignal(signal.SIGTERM)

    monkeypatch.setattr(control, "start_workers", start_workers)
    monkeypatch.setattr(Scheduler, "run", run_scheduler)
    assert control.run() is None
    assert handlers["fork"] == orig_handler
    # pylint: disable=protected-access
    assert handlers["schedule"] == control._handle_signal
    assert signal.getsignal(signal.SIGTERM) == orig_handler
    assert control.get_channel().is_closed()
    assert collector.has_event("notice.control.shutdown")



def test_cli_check(
        tmp_path: str,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str]) -> None:
    """
    Test checking configurations from the command line.

    Args:
        tmp_path (str): The folder for the test.
        monkeypatch (pytest.MonkeyPatch): Replaces the command line.
        capsys (pytest.CaptureFixture[str]): Captures the output.
    """
    base = f"{tmp_path}"
    fname = os.path.join(base, "config.json")
    obj = make_config_obj(
        base,
        nodes={
            "alpha": {"data": "alpha:/srv/data", "batches": "alpha:/out"},
        },
        dry_run=True)
    with open(fname, "w", encoding="utf-8") as fout:
        json.dump(obj, fout)
    monkeypatch.setattr(
        "sys.argv", ["scattersync", "--config", fname, "check"])
    with pytest.raises(SystemExit) as exc:
        run()
    assert exc.value.code == 0
    out = capsys.readouterr().out
    assert "dry-run mode" in out
    assert "node alpha: data alpha:/srv/data pull from alpha:/out" in out
    with open(fname, "w", encoding="utf-8") as fout:
        json.dump({**obj, "nodes": {"alpha": {}}}, fout)
    with pytest.raises(SystemExit) as exc:
        run()
    assert exc.value.code == 1
    assert "invalid configuration" in capsys.readouterr().out
