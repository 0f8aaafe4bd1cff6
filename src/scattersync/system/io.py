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
"""A collection of useful IO operations on batch files and their folders."""
import errno
import os
import time
from collections.abc import Callable


RETRY_ERRORS: set[int] = {errno.EAGAIN, errno.EBUSY, errno.EINTR}
"""Errors that indicate a busy or slow disk device."""
RETRY_COUNT = 10
"""How often an IO operation is repeated for a busy disk device."""


def when_ready(fun: Callable[[], None]) -> None:
    """
    Repeats an IO operation for a busy or slow disk device (e.g., NFS) for a
    short while. The operation needs to be idempotent.

    Args:
        fun (Callable[[], None]): The IO operation to perform.

    Raises:
        OSError: If the operation failed for any other reason or the device
            stays busy.
    """
    counter = 0
    while True:
        try:
            fun()
            return
        except OSError as ose:
            if counter < RETRY_COUNT and ose.errno in RETRY_ERRORS:
                time.sleep(0.1)
                counter += 1
                continue
            raise ose


def ensure_folder(folder: str) -> str:
    """
    Ensures that a folder exist.

    Args:
        folder (str): The folder.

    Raises:
        OSError: If the folder could not be created.

    Returns:
        str: The folder.
    """
    if not os.path.isdir(folder):
        when_ready(lambda: os.makedirs(folder, mode=0o777, exist_ok=True))
    return folder


def listdir(path: str) -> list[str]:
    """
    Lists all filenames of the given folder path.

    Args:
        path (str): The folder.

    Raises:
        OSError: If the folder cannot be read.

    Returns:
        list[str]: A sorted list of all filenames in the folder.
    """
    return sorted(os.listdir(path))


def listdir_head(path: str, limit: int) -> list[str]:
    """
    Lists the first filenames of the given folder path in the order the
    filesystem returns them. The names are not sorted.

    Args:
        path (str): The folder.
        limit (int): The maximum number of names.

    Raises:
        OSError: If the folder cannot be read.

    Returns:
        list[str]: At most `limit` filenames.
    """
    res: list[str] = []
    if limit <= 0:
        return res
    with os.scandir(path) as it:
        for entry in it:
            res.append(entry.name)
            if len(res) >= limit:
                break
    return res


def get_mtime(fname: str) -> float:
    """
    The modification time of a file.

    Args:
        fname (str): The file.

    Raises:
        OSError: If the file cannot be accessed.

    Returns:
        float: The modification time in seconds since the epoch.
    """
    return os.stat(fname).st_mtime


def link_file(src: str, dst: str) -> bool:
    """
    Creates a hard link unless the destination already exists.

    Args:
        src (str): The existing file.
        dst (str): The new link.

    Raises:
        OSError: If the link could not be created.

    Returns:
        bool: True, if a new link has been created.
    """
    if os.path.exists(dst):
        return False
    when_ready(lambda: os.link(src, dst))
    return True


def remove_file(fname: str) -> None:
    """
    Removes the given file.

    Args:
        fname (str): The path.

    Raises:
        OSError: If the file could not be removed.
    """
    when_ready(lambda: os.remove(fname))


def move_file(src: str, dst: str) -> None:
    """
    Atomically moves a file within the same filesystem.

    Args:
        src (str): The source file.
        dst (str): The destination file.

    Raises:
        OSError: If the file could not be moved.
    """
    if os.path.abspath(src) == os.path.abspath(dst):
        raise ValueError(f"{src} == {dst}")
    when_ready(lambda: os.rename(src, dst))


def read_bytes(fname: str) -> bytes:
    """
    Reads the full content of a file.

    Args:
        fname (str): The file.

    Raises:
        OSError: If the file cannot be read.

    Returns:
        bytes: The content.
    """
    with open(fname, "rb") as fin:
        return fin.read()
