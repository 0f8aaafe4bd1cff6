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
"""Batch file names are the wire format of the durable queue. Local batches
in the staging root are named `<id>_<origin>_<disambiguator>.<type>.batch`.
Once routed into a push or pull folder only the type tag at the end of the
name matters."""
import re

from scattersync.system.base import BT_REC


LOCAL_BATCH = re.compile(r"^\d+_(?P<origin>[^_]+)_.*\.batch$")
"""The name of a batch in the staging root. The origin is the node the batch
came from."""
BATCH_TYPE = re.compile(r"[_.](?P<type>[^_.]+)\.batch$")
"""The type tag of a batch."""


def parse_local_batch(name: str) -> str | None:
    """
    Extracts the origin node from the name of a batch in the staging root.

    Args:
        name (str): The file name.

    Returns:
        str | None: The origin node or None if the name is not a local batch.
    """
    match = LOCAL_BATCH.match(name)
    if match is None:
        return None
    return match.group("origin")


def get_batch_type(name: str) -> str | None:
    """
    Extracts the type tag from a batch file name.

    Args:
        name (str): The file name.

    Returns:
        str | None: The type tag or None if the name has none.
    """
    match = BATCH_TYPE.search(name)
    if match is None:
        return None
    return match.group("type")


def is_rec_type(batch_type: str) -> bool:
    """
    Whether a type tag denotes recursive batches. Every other type is treated
    as non-recursive.

    Args:
        batch_type (str): The type tag.

    Returns:
        bool: True, if the batches are recursive.
    """
    return batch_type == BT_REC
