# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
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

"""
Parsing of compose duration strings such as "1m30s" or "500ms".
"""
import re
from typing import Optional, Union

_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
}
_PART = re.compile(r'(\d+(?:\.\d+)?)(ns|us|ms|s|m|h)')


def parse_duration(value: Optional[Union[str, int, float]]) -> Optional[float]:
    """
    Converts a compose duration to seconds.

    Bare numbers are taken as seconds.

    :param value: Duration such as "10s", "1m30s", "250ms" or 5.
    :return: Seconds, or None when no value is given.
    :raises ValueError: If the string is not a valid duration.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)

    text = str(value).strip()
    if not text:
        raise ValueError("empty duration")
    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


def to_nanoseconds(seconds: Optional[float]) -> Optional[int]:
    if seconds is None:
        return None
    return int(round(seconds * 1_000_000_000))
