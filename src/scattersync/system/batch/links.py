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
"""Durable linking of batch files. A batch must never be dropped, so creating
folders and links is retried until it succeeds. Each failed attempt raises an
alert, waits `fail_time`, and reloads the configuration, which allows an
operator to fix the problem without restarting."""
import os

from scattersync.system.base import TransferMode
from scattersync.system.config.config import Config
from scattersync.system.io import ensure_folder, link_file


def ensure_folder_until_done(config: Config, folder: str, ident: str) -> str:
    """
    Creates a folder retrying until it exists.

    Args:
        config (Config): The configuration.
        folder (str): The folder.
        ident (str): The identity of the current process.

    Returns:
        str: The folder.
    """
    while True:
        try:
            return ensure_folder(folder)
        except OSError:
            config.get_logger().log_error(
                "alert.folder",
                "directory",
                message=(
                    f"error creating directory {folder}, "
                    "cannot continue safely"))
        config.do_sleep(config.get_fail_time())
        config.reload(ident)


def link_until_done(config: Config, src: str, dst: str, ident: str) -> None:
    """
    Creates a hard link retrying until it exists. An existing destination
    counts as success.

    Args:
        config (Config): The configuration.
        src (str): The existing batch file.
        dst (str): The new link.
        ident (str): The identity of the current process.
    """
    logger = config.get_logger()
    while True:
        try:
            if link_file(src, dst):
                logger.log_event(
                    "debug.batch.link",
                    {
                        "name": "batch",
                        "action": "link",
                        "batch": src,
                        "target": dst,
                    })
            return
        except OSError:
            logger.log_error(
                "alert.link",
                "link",
                message=(
                    f"error creating link from {src} to {dst}, "
                    "cannot continue safely"))
        config.do_sleep(config.get_fail_time())
        config.reload(ident)


def backup_batches(
        config: Config,
        mode: TransferMode,
        node: str,
        folder: str,
        batches: list[str],
        ident: str) -> None:
    """
    Hard links batches into the backup folder of the current day. Nothing
    happens if backups are disabled.

    Args:
        config (Config): The configuration.
        mode (TransferMode): The transfer mode of the backup folder.
        node (str): The node of the backup folder.
        folder (str): The folder holding the batches.
        batches (list[str]): The batch file names.
        ident (str): The identity of the current process.
    """
    backup_dir = config.get_backup_dir(mode, node)
    if backup_dir is None:
        return
    ensure_folder_until_done(config, backup_dir, ident)
    for batch in batches:
        link_until_done(
            config,
            os.path.join(folder, batch),
            os.path.join(backup_dir, batch),
            ident)
