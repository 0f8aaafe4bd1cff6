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
"""A node is a replication peer of the local node."""
import re
from typing import TypedDict

from typing_extensions import NotRequired


NodeJSON = TypedDict('NodeJSON', {
    "data": str,
    "batches": NotRequired[str],
    "sync_data_rec": NotRequired[str],
    "sync_data_norec": NotRequired[str],
    "bulk_max_batches": NotRequired[int],
})
"""The configuration of a node. `data` is the location of the replicated data
on the node (as understood by the transfer commands). `batches` is the remote
location of batches the node prepared for us. Without it, no batches are
pulled from the node. `sync_data_rec` and `sync_data_norec` override the
global transfer commands and `bulk_max_batches` the global bulk size."""


VALID_NODE_NAME = re.compile(r"^[^_/.\s]+$")
"""Node names are embedded in batch file names and directory names."""


class Node:
    """A configured replication peer."""
    def __init__(
            self,
            name: str,
            *,
            data: str,
            batches: str | None,
            sync_data_rec: str | None,
            sync_data_norec: str | None,
            bulk_max_batches: int | None) -> None:
        if VALID_NODE_NAME.match(name) is None:
            raise ValueError(f"invalid node name: {name!r}")
        if bulk_max_batches is not None and bulk_max_batches < 1:
            raise ValueError(
                f"bulk_max_batches of {name} must be positive: "
                f"{bulk_max_batches}")
        self._name = name
        self._data = data
        self._batches = batches
        self._sync_data_rec = sync_data_rec
        self._sync_data_norec = sync_data_norec
        self._bulk_max_batches = bulk_max_batches

    @staticmethod
    def from_json(name: str, obj: NodeJSON) -> 'Node':
        """
        Creates a node from its configuration.

        Args:
            name (str): The node name.
            obj (NodeJSON): The node configuration.

        Returns:
            Node: The node.
        """
        return Node(
            name,
            data=obj["data"],
            batches=obj.get("batches") or None,
            sync_data_rec=obj.get("sync_data_rec") or None,
            sync_data_norec=obj.get("sync_data_norec") or None,
            bulk_max_batches=obj.get("bulk_max_batches"))

    def get_name(self) -> str:
        return self._name

    def get_data(self) -> str:
        """
        The location of the replicated data on the node.

        Returns:
            str: The location as understood by the transfer commands.
        """
        return self._data

    def get_batches(self) -> str | None:
        """
        The remote location of batches that the node prepared for us.

        Returns:
            str | None: The location or None if the node does not provide
                batches.
        """
        return self._batches

    def get_sync_data_command(self, is_rec: bool) -> str | None:
        """
        The override transfer command.

        Args:
            is_rec (bool): Whether the batches are recursive.

        Returns:
            str | None: The command or None if the global command should be
                used.
        """
        return self._sync_data_rec if is_rec else self._sync_data_norec

    def get_bulk_max_batches(self) -> int | None:
        return self._bulk_max_batches

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}[{self._name}]"
