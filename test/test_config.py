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
"""Tests loading and reloading configurations."""
import json
import os
from typing import Any, cast

import pytest

from scattersync.system.base import MODE_PULL, MODE_PUSH
from scattersync.system.config.config import IDENT_RELAY, IDENT_SCHED
from scattersync.system.config.loader import (
    load_config,
    load_test,
    read_config,
    SyncConfigJSON,
    validate_config,
)
from scattersync.system.util import get_day_str
from test.util import create_config, EventCollector, make_config_obj


def test_getters(tmp_path: str) -> None:
    """
    Test reading the configuration.

    Args:
        tmp_path (str): The folder for the test.
    """
    config, _, _ = create_config(
        f"{tmp_path}",
        nodes={
            "alpha": {"data": "alpha:/srv/data"},
            "beta": {
                "data": "beta:/srv/data",
                "batches": "beta:/srv/out",
                "sync_data_rec": "beta-rec",
                "bulk_max_batches": 7,
            },
        },
        sync_data_rec="rec %b",
        sync_data_norec="norec %b")
    assert config.get_node_names() == ["alpha", "beta"]
    assert config.get_bulk_cap("alpha") == 3
    assert config.get_bulk_cap("beta") == 7
    assert config.get_sync_data_command("alpha", is_rec=True) == "rec %b"
    assert config.get_sync_data_command("beta", is_rec=True) == "beta-rec"
    assert config.get_sync_data_command("beta", is_rec=False) == "norec %b"
    assert config.get_accept_status() == [0]
    assert not config.is_dry_run()
    assert config.get_pull_batches_command() is None
    assert config.get_default_capacity() == 6
    assert config.get_schedule_count(MODE_PUSH) == 2
    assert config.get_schedule_count(MODE_PULL) == 1
    beta = config.get_node("beta")
    assert beta is not None
    assert beta.get_batches() == "beta:/srv/out"
    assert config.get_node("gamma") is None
    assert config.get_mode_dir(MODE_PUSH, "beta") == os.path.join(
        config.get_batch_dir(), "push", "beta")
    assert config.get_backup_dir(MODE_PULL, "beta") is None
    assert config.check_file()


def test_backup_dir(tmp_path: str) -> None:
    """
    Test the dated backup folders.

    Args:
        tmp_path (str): The folder for the test.
    """
    backup = os.path.join(f"{tmp_path}", "backup")
    config, _, _ = create_config(f"{tmp_path}", backup_batches=backup)
    assert config.get_backup_dir(MODE_PUSH, "alpha") == os.path.join(
        backup, get_day_str(), "push", "alpha")


def test_checkfile(tmp_path: str) -> None:
    """
    Test a missing checkfile.

    Args:
        tmp_path (str): The folder for the test.
    """
    config, collector, _ = create_config(f"{tmp_path}")
    os.remove(config.get_checkfile())
    assert not config.check_file()
    assert collector.has_event("error.checkfile")


@pytest.mark.parametrize("missing", ["sync_data_rec", "sync_data_norec"])
def test_missing_commands(tmp_path: str, missing: str) -> None:
    """
    Test that configurations without transfer commands are rejected.

    Args:
        tmp_path (str): The folder for the test.
        missing (str): The missing command.
    """
    obj = cast(dict[str, Any], make_config_obj(f"{tmp_path}"))
    obj.pop(missing)
    collector = EventCollector()
    with pytest.raises(ValueError, match="invalid configuration"):
        load_test(cast(SyncConfigJSON, obj), listeners=[collector])
    assert collector.get_messages("error.config.commands") == [
        "sync data command not configured",
    ]


def test_pull_batches_warning(tmp_path: str) -> None:
    """
    Test that a missing pull batches command is only a warning.

    Args:
        tmp_path (str): The folder for the test.
    """
    _, collector, _ = create_config(f"{tmp_path}")
    assert collector.has_event("warn.config.pull_batches")
    _, collector, _ = create_config(
        f"{tmp_path}", pull_batches="cp %s %d")
    assert not collector.has_event("warn.config.pull_batches")


def test_reload(tmp_path: str) -> None:
    """
    Test reloading configurations.

    Args:
        tmp_path (str): The folder for the test.
    """
    base = f"{tmp_path}"
    current = make_config_obj(base)
    collector = EventCollector()
    config = load_test(
        current,
        listeners=[collector],
        reader=lambda: current)
    # unchanged
    assert not config.reload(IDENT_SCHED)
    assert not collector.has_event("notice.config.reload")
    # other settings change
    current = make_config_obj(base, scan_time=1.0, dry_run=True)
    assert config.reload(IDENT_SCHED)
    assert config.get_scan_time() == 1.0
    assert config.is_dry_run()
    assert collector.has_event("notice.config.reload")
    # the collector survives the new logger configuration
    collector.events.clear()
    # nodes must not change
    current = make_config_obj(
        base,
        nodes={
            "alpha": {"data": "alpha:/srv/data"},
            "gamma": {"data": "gamma:/srv/data"},
        },
        scan_time=2.0)
    assert not config.reload(IDENT_SCHED)
    assert config.get_node_names() == ["alpha", "beta"]
    assert config.get_scan_time() == 1.0
    assert collector.get_messages("error.config.nodes") == [
        "nodes cannot change at runtime",
    ]
    # only the scheduler reports configuration faults
    collector.events.clear()
    assert not config.reload(IDENT_RELAY)
    assert not collector.has_event("error.config")
    # changing node settings is fine
    current = make_config_obj(
        base,
        nodes={
            "alpha": {"data": "alpha:/srv/other"},
            "beta": {"data": "beta:/srv/data", "bulk_max_batches": 1},
        })
    assert config.reload(IDENT_SCHED)
    assert config.get_bulk_cap("beta") == 1


def test_reload_invalid(tmp_path: str) -> None:
    """
    Test that invalid configurations keep the current one.

    Args:
        tmp_path (str): The folder for the test.
    """
    base = f"{tmp_path}"
    obj = make_config_obj(base)

    def reader() -> SyncConfigJSON:
        raise ValueError("broken file")

    collector = EventCollector()
    config = load_test(obj, listeners=[collector], reader=reader)
    assert not config.reload(IDENT_SCHED)
    assert config.get_scan_time() == 5.0
    assert collector.get_messages("warn.config.reload") == [
        "error reloading config: broken file",
    ]


@pytest.mark.parametrize("key, value", [
    ("push_count", 0),
    ("push_procs", -1),
    ("bulk_max_batches", 1.5),
    ("fail_time", -1.0),
    ("scan_time", "5"),
    ("batch_dir", ""),
    ("accept_status", [0, "1"]),
    ("pull_batches", 5),
    ("nodes", []),
    ("nodes", {"alpha": {}}),
])
def test_validate(tmp_path: str, key: str, value: Any) -> None:
    """
    Test rejecting invalid configurations.

    Args:
        tmp_path (str): The folder for the test.
        key (str): The field to change.
        value (Any): The invalid value.
    """
    obj = cast(dict[str, Any], make_config_obj(f"{tmp_path}"))
    validate_config(obj)
    obj[key] = value
    with pytest.raises(ValueError):
        validate_config(obj)


def test_invalid_node_name(tmp_path: str) -> None:
    """
    Test that node names must not contain separators.

    Args:
        tmp_path (str): The folder for the test.
    """
    with pytest.raises(ValueError, match="invalid node name"):
        create_config(f"{tmp_path}", nodes={"a_b": {"data": "x"}})


def test_load_file(tmp_path: str) -> None:
    """
    Test loading configurations from files.

    Args:
        tmp_path (str): The folder for the test.
    """
    base = f"{tmp_path}"
    fname = os.path.join(base, "config.json")
    obj = make_config_obj(base)
    with open(fname, "w", encoding="utf-8") as fout:
        json.dump(obj, fout)
    assert read_config(fname) == obj
    config = load_config(fname)
    assert config.get_node_names() == ["alpha", "beta"]
    assert not config.reload(IDENT_SCHED)
    with open(fname, "w", encoding="utf-8") as fout:
        json.dump({**obj, "scan_time": 7}, fout)
    assert config.reload(IDENT_SCHED)
    assert config.get_scan_time() == 7
    with open(fname, "w", encoding="utf-8") as fout:
        fout.write("{")
    with pytest.raises(ValueError, match="JSON parse error"):
        read_config(fname)
    assert not config.reload(IDENT_SCHED)
    assert config.get_scan_time() == 7
