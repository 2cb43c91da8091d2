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
Utilities for string interpolation using environment variables.
"""
import re
from typing import Dict, List, Optional


class InterpolationError(ValueError):
    """A ${VAR:?message} placeholder referenced an unset variable."""


class EnvironmentInterpolator:
    """
    Utility for interpolating environment variables in compose files.
    Supports $VAR, ${VAR}, ${VAR:-default}, ${VAR-default}, ${VAR:+value},
    ${VAR+value}, ${VAR:?error}, ${VAR?error} and $$ as a literal dollar.
    """
    PATTERN = re.compile(
        r'\$(?:'
        r'(?P<escaped>\$)'
        r'|\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)(?:(?P<colon>:)?(?P<modifier>[-+?])(?P<alt>[^}]*))?\}'
        r'|(?P<named>[A-Za-z_][A-Za-z0-9_]*)'
        r')'
    )

    @classmethod
    def interpolate(cls, template: str, context: Dict[str, str],
                    missing: Optional[List[str]] = None) -> str:
        """
        Interpolates environment variables in the template string using the provided context.

        Unset variables without a modifier resolve to an empty string, as in
        Docker Compose; their names are appended to ``missing`` when given.

        :param template: The string containing placeholders.
        :param context: The environment variables context.
        :param missing: Collects the names of unset variables.
        :return: The interpolated string.
        :raises InterpolationError: If a ${VAR:?message} variable is unset.
        """
        def replace(match):
            if match.group('escaped'):
                return '$'

            var_name = match.group('braced') or match.group('named')
            modifier = match.group('modifier')
            alt_value = match.group('alt') or ''
            value = context.get(var_name)
            # With a colon an empty value counts as unset
            is_set = bool(value) if match.group('colon') else value is not None

            if modifier == '-':
                return value if is_set else alt_value
            if modifier == '+':
                return alt_value if is_set else ''
            if modifier == '?':
                if not is_set:
                    raise InterpolationError(
                        alt_value or f"required variable {var_name} is missing a value"
                    )
                return value

            if value is None:
                if missing is not None:
                    missing.append(var_name)
                return ''
            return value

        return cls.PATTERN.sub(replace, template)
