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
"""Functionality for error handling."""
from typing import cast, get_args, Literal


ErrorCode = Literal[
    "unknown",
    "general_exception",
    "config",
    "checkfile",
    "directory",
    "link",
    "unlink",
    "rename",
    "invalid_batch",
    "transfer",
    "spawn",
    "length_mismatch",
    "channel_send",
    "channel_receive",
    "lock",
]
"""The type of error."""


ERROR_CODES: set[ErrorCode] = set(get_args(ErrorCode))
"""All types of errors."""


def to_error_code(text: str) -> ErrorCode:
    """
    Convert a string to an error code.

    Args:
        text (str): The error code.

    Raises:
        ValueError: If the provided string is not an error code.

    Returns:
        ErrorCode: The error code.
    """
    if text not in ERROR_CODES:
        raise ValueError(f"invalid error code {text}")
    return cast(ErrorCode, text)
