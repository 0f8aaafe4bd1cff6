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
"""Groups batch files into bulks that can be transferred at once."""
from collections.abc import Callable, Iterable

from scattersync.system.batch.naming import get_batch_type


def group_bulks(
        names: Iterable[str],
        *,
        get_mtime: Callable[[str], float],
        now: float,
        older_than: float,
        cap: int,
        on_unreadable: Callable[[str, OSError], None]) -> list[list[str]]:
    """
    Groups batch file names into bulks in the given order. Names without a
    type tag are ignored. A new bulk is started when the modification time of
    a file cannot be read, when the file is younger than `older_than`, when
    the current bulk is full, or when the type changes. Bulks never mix types
    and never hold more than `cap` files.

    Args:
        names (Iterable[str]): The file names in listing order.
        get_mtime (Callable[[str], float]): Returns the modification time of a
            file name.
        now (float): The current time.
        older_than (float): The settle age in seconds.
        cap (int): The maximum number of files in a bulk.
        on_unreadable (Callable[[str, OSError], None]): Called if the
            modification time of a file cannot be read.

    Returns:
        list[list[str]]: The bulks in order.
    """
    res: list[list[str]] = []
    bulk: list[str] = []
    last_type: str | None = None
    for name in names:
        cur_type = get_batch_type(name)
        if cur_type is None:
            continue
        try:
            is_fresh = now - get_mtime(name) < older_than
        except OSError as exc:
            on_unreadable(name, exc)
            is_fresh = True
        if (
                is_fresh
                or len(bulk) >= cap
                or (last_type is not None and cur_type != last_type)):
            if bulk:
                res.append(bulk)
            bulk = []
        bulk.append(name)
        last_type = cur_type
    if bulk:
        res.append(bulk)
    return res
