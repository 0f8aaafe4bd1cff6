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
"""This module defines the basic vocabulary of the replication system:
transfer modes, message types, task results, and the module base class for
environment dependent behavior."""
from typing import cast, get_args, Literal


TransferMode = Literal[
    "push",
    "pull",
]
"""The direction of a transfer relative to the local node. `push` ships local
batches to a peer and `pull` fetches batches a peer prepared for us."""
MODE_PUSH: TransferMode = "push"
"""Outbound replication."""
MODE_PULL: TransferMode = "pull"
"""Inbound replication."""
TRANSFER_MODES: tuple[TransferMode, ...] = get_args(TransferMode)
"""All transfer modes in scheduling order."""


MessageType = Literal[
    "push",
    "pull",
    "result",
]
"""The logical channel a message is sent on."""
MSG_PUSH: MessageType = "push"
"""Push tasks for push workers."""
MSG_PULL: MessageType = "pull"
"""Pull tasks for the pull worker."""
MSG_RESULT: MessageType = "result"
"""Task results for the scheduler."""
MESSAGE_TYPES: tuple[MessageType, ...] = get_args(MessageType)
"""All message types."""


ResultStatus = Literal[
    "success",
    "fail",
]
"""The outcome of a task."""
RES_SUCCESS: ResultStatus = "success"
"""The task completed successfully."""
RES_FAIL: ResultStatus = "fail"
"""The task failed and its batches will be retried."""


BT_REC = "rec"
"""Type tag of recursive (full) batches. Every other type tag is treated as
non-recursive."""
BT_NOREC = "norec"
"""Type tag of non-recursive (incremental) batches."""


def to_message_type(mode: TransferMode) -> MessageType:
    """
    Get the message type that carries tasks of the given transfer mode.

    Args:
        mode (TransferMode): The transfer mode.

    Returns:
        MessageType: The message type.
    """
    if mode == MODE_PUSH:
        return MSG_PUSH
    return MSG_PULL


def to_result_status(text: str) -> ResultStatus:
    """
    Convert a string to a result status.

    Args:
        text (str): The string.

    Raises:
        ValueError: If the string is not a valid result.

    Returns:
        ResultStatus: The result status.
    """
    if text not in get_args(ResultStatus):
        raise ValueError(f"invalid result status {text}")
    return cast(ResultStatus, text)


Locality = Literal[
    "local",
    "remote",
    "either",
]
"""In which environment a module can be used. It can be 'local' only, 'remote'
only, or available in 'either' of those environments."""

L_LOCAL: Locality = "local"
"""Indicates that a module can only be used by processes of the same host that
share a common ancestor."""
L_REMOTE: Locality = "remote"
"""Indicates that a module can only be used in a remote environment."""
L_EITHER: Locality = "either"
"""
Indicates that a module can be used in either a local or remote environment.
"""


class Module:  # pylint: disable=too-few-public-methods
    """
    A module for environment dependent behavior. Module classes need to be
    subclassed to implement the respective behavior.
    """
    @staticmethod
    def locality() -> Locality:
        """
        Whether the module only works for processes forked from the same
        control process, for processes anywhere (other host), or either.

        Returns:
            Locality: The locality mode.
        """
        raise NotImplementedError()
