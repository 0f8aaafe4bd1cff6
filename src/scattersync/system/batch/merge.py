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
"""Merges the content of multiple batches into one transfer."""
from collections.abc import Iterable


def merge_batches(contents: Iterable[bytes]) -> bytes:
    """
    Merges batch contents. Every content is stripped of surrounding
    whitespace and split into lines. Duplicate lines are removed keeping the
    first occurrence. The records are opaque and are never decoded.

    Args:
        contents (Iterable[bytes]): The raw contents of the batch files in
            order.

    Returns:
        bytes: The merged content with a trailing new line.
    """
    seen: set[bytes] = set()
    lines: list[bytes] = []
    for content in contents:
        for line in content.strip().split(b"\n"):
            if line in seen:
                continue
            seen.add(line)
            lines.append(line)
    return b"\n".join(lines) + b"\n"
