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
"""Tests executing commands and transferring batches."""
import os

import pytest

from scattersync.system.base import MODE_PULL, MODE_PUSH
from scattersync.system.command.command import execute_command, substitute
from scattersync.system.command.transfer import sync_data_batch
from test.util import create_config, write_batch


def read_text(fname: str) -> str:
    with open(fname, "r", encoding="utf-8") as fin:
        return fin.read()


@pytest.mark.parametrize("command, subst, expected", [
    ("cp %b %d", {}, "cp %b %d"),
    ("cp %b %d", {"%b": "a.batch", "%d": "/srv/x"}, "cp a.batch /srv/x"),
    ("cp %b %d", {"%b": "x %d", "%d": "y"}, "cp 'x %d' y"),
    ("echo %b%b", {"%b": "it's"}, "echo 'it'\"'\"'s''it'\"'\"'s'"),
    ("rsync %s %d", {"%s": "", "%d": "a;b"}, "rsync '' 'a;b'"),
])
def test_substitute(
        command: str, subst: dict[str, str], expected: str) -> None:
    """
    Test replacing placeholders.

    Args:
        command (str): The command.
        subst (dict[str, str]): The replacements.
        expected (str): The expected command.
    """
    assert substitute(command, subst) == expected


def test_status(tmp_path: str) -> None:
    """
    Test accepting exit codes.

    Args:
        tmp_path (str): The folder for the test.
    """
    config, collector, _ = create_config(f"{tmp_path}")
    assert execute_command(config, "true", {})
    assert not collector.has_event("error")
    assert not execute_command(config, "false", {})
    assert collector.has_event("error.command.status")
    config, collector, _ = create_config(
        f"{tmp_path}", accept_status=[0, 3])
    assert execute_command(config, "exit 3", {})
    assert not execute_command(config, "exit 4", {})
    exits = collector.get_events("debug.command.exit")
    assert [event["event"].get("status") for event in exits] == [3, 4]


def test_stderr(tmp_path: str) -> None:
    """
    Test that the error output is reported.

    Args:
        tmp_path (str): The folder for the test.
    """
    config, collector, _ = create_config(f"{tmp_path}")
    assert not execute_command(config, "echo broken link >&2; exit 1", {})
    messages = collector.get_messages("error.command.status")
    assert len(messages) == 1
    assert "status 1" in messages[0]
    assert "broken link" in messages[0]


def test_input(tmp_path: str) -> None:
    """
    Test feeding large inputs.

    Args:
        tmp_path (str): The folder for the test.
    """
    base = f"{tmp_path}"
    config, collector, _ = create_config(base)
    out = os.path.join(base, "out.txt")
    data = b"".join(
        f"{ix}_record\n".encode("utf-8") for ix in range(100000))
    assert execute_command(config, "cat > %d", {"%d": out}, data)
    with open(out, "rb") as fin:
        assert fin.read() == data
    assert not collector.has_event("error")
    # the command never reads its input
    assert not execute_command(config, "exit 0", {}, data)
    assert collector.has_event("error.command.length")


def test_quoting(tmp_path: str) -> None:
    """
    Test that values cannot inject shell syntax.

    Args:
        tmp_path (str): The folder for the test.
    """
    base = f"{tmp_path}"
    config, _, _ = create_config(base)
    out = os.path.join(base, "out file.txt")
    assert execute_command(
        config, "echo %b > %d", {"%b": "it's; rm -rf /", "%d": out})
    assert read_text(out) == "it's; rm -rf /\n"


def test_dry_run(tmp_path: str) -> None:
    """
    Test that commands are not executed in dry-run mode.

    Args:
        tmp_path (str): The folder for the test.
    """
    base = f"{tmp_path}"
    config, collector, _ = create_config(base, dry_run=True)
    marker = os.path.join(base, "marker")
    assert execute_command(config, "touch %d", {"%d": marker})
    assert not os.path.exists(marker)
    events = collector.get_events("debug.command.execute")
    assert len(events) == 1
    assert events[0]["event"].get("dry_run")
    assert execute_command(config, "false", {})


def test_checkfile(tmp_path: str) -> None:
    """
    Test that nothing is executed without the checkfile.

    Args:
        tmp_path (str): The folder for the test.
    """
    base = f"{tmp_path}"
    config, collector, _ = create_config(base)
    os.remove(config.get_checkfile())
    marker = os.path.join(base, "marker")
    assert not execute_command(config, "touch %d", {"%d": marker})
    assert not os.path.exists(marker)
    assert collector.has_event("error.checkfile")


def test_sync_single(tmp_path: str) -> None:
    """
    Test pushing a single batch as file.

    Args:
        tmp_path (str): The folder for the test.
    """
    base = f"{tmp_path}"
    remote = os.path.join(base, "remote")
    os.makedirs(remote)
    config, _, _ = create_config(
        base,
        nodes={"alpha": {"data": remote}},
        sync_data_norec="echo %s > %d/src; cp %b %d/out")
    folder = config.get_mode_dir(MODE_PUSH, "alpha")
    write_batch(folder, "1_norec.batch", b"a\nb\n")
    assert sync_data_batch(config, "alpha", ["1_norec.batch"], MODE_PUSH)
    assert read_text(os.path.join(remote, "out")) == "a\nb\n"
    assert read_text(os.path.join(remote, "src")) == (
        f"{config.get_data_dir()}\n")


def test_sync_merged(tmp_path: str) -> None:
    """
    Test that multiple batches are merged through stdin.

    Args:
        tmp_path (str): The folder for the test.
    """
    base = f"{tmp_path}"
    remote = os.path.join(base, "remote")
    os.makedirs(remote)
    config, _, _ = create_config(
        base,
        nodes={"alpha": {"data": remote}},
        sync_data_rec="echo rec %b > %d/kind; cat > %d/out",
        sync_data_norec="echo norec %b > %d/kind; cat > %d/out")
    folder = config.get_mode_dir(MODE_PUSH, "alpha")
    write_batch(folder, "1_norec.batch", b"x\ny\n")
    write_batch(folder, "2_norec.batch", b"y\nz\n")
    write_batch(folder, "3_rec.batch", b"x\n")
    assert sync_data_batch(
        config, "alpha", ["1_norec.batch", "2_norec.batch"], MODE_PUSH)
    assert read_text(os.path.join(remote, "kind")) == "norec -\n"
    assert read_text(os.path.join(remote, "out")) == "x\ny\nz\n"
    assert sync_data_batch(
        config, "alpha", ["1_norec.batch", "3_rec.batch"], MODE_PUSH)
    assert read_text(os.path.join(remote, "kind")) == "rec -\n"
    assert read_text(os.path.join(remote, "out")) == "x\ny\n"


def test_sync_pull(tmp_path: str) -> None:
    """
    Test that pulls swap source and destination.

    Args:
        tmp_path (str): The folder for the test.
    """
    base = f"{tmp_path}"
    config, _, _ = create_config(
        base, sync_data_norec="echo %s > %d/src; cp %b %d/out")
    folder = config.get_mode_dir(MODE_PULL, "beta")
    write_batch(folder, "1_beta_2_norec.batch", b"pulled\n")
    assert sync_data_batch(
        config, "beta", ["1_beta_2_norec.batch"], MODE_PULL)
    data_dir = config.get_data_dir()
    assert read_text(os.path.join(data_dir, "src")) == "beta:/srv/data\n"
    assert read_text(os.path.join(data_dir, "out")) == "pulled\n"


def test_sync_failures(tmp_path: str) -> None:
    """
    Test failing transfers.

    Args:
        tmp_path (str): The folder for the test.
    """
    base = f"{tmp_path}"
    config, collector, _ = create_config(base, sync_data_norec="cat %b")
    folder = config.get_mode_dir(MODE_PUSH, "alpha")
    write_batch(folder, "1_norec.batch")
    assert sync_data_batch(config, "alpha", [], MODE_PUSH)
    assert not collector.has_event("debug.command")
    assert not sync_data_batch(config, "gamma", ["1_norec.batch"], MODE_PUSH)
    assert collector.has_event("error.transfer.node")
    assert not sync_data_batch(config, "alpha", ["1.batch"], MODE_PUSH)
    assert collector.has_event("alert.transfer.batch")
    assert not sync_data_batch(
        config, "alpha", ["1_norec.batch", "2_norec.batch"], MODE_PUSH)
    assert collector.has_event("error.transfer.read")
    assert not collector.has_event("error.transfer.push")
    assert not sync_data_batch(config, "alpha", ["2_norec.batch"], MODE_PUSH)
    assert collector.has_event("error.command.status")
    assert collector.has_event("error.transfer.push")
