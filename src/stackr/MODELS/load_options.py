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
Options consumed by the project loader.
"""
from pydantic import BaseModel


class LoadOptions(BaseModel):
    """
    Where to read the manifest from and how to name what it declares.
    """
    manifest_path: str = "docker-compose.yml"
    name_prefix: str = ""
    name_suffix: str = ""
    pull_env_from_system: bool = False
