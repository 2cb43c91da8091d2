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
Schema of a docker-compose file as written by users.

Only the keys stackr acts on are typed; everything else is accepted and
ignored. Both the short and long syntax are allowed wherever compose allows
them, the parser normalizes them into ServiceDefinition.
"""
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

Scalar = Union[str, int, float, bool, None]
ListOrDict = Union[List[str], Dict[str, Scalar]]
StringOrList = Union[str, List[str]]


class ComposeBuild(BaseModel):
    model_config = ConfigDict(extra="ignore")

    context: str = "."
    dockerfile: Optional[str] = None
    dockerfile_inline: Optional[str] = None
    args: Optional[ListOrDict] = None
    target: Optional[str] = None


class ComposePort(BaseModel):
    model_config = ConfigDict(extra="ignore")

    target: int
    published: Optional[Union[str, int]] = None
    host_ip: Optional[str] = None
    protocol: str = "tcp"


class ComposeVolume(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = "volume"
    source: Optional[str] = None
    target: str
    read_only: bool = False


class ComposeServiceNetwork(BaseModel):
    model_config = ConfigDict(extra="ignore")

    aliases: List[str] = []


class ComposeHealthCheck(BaseModel):
    model_config = ConfigDict(extra="ignore")

    test: Optional[StringOrList] = None
    interval: Optional[Union[str, int, float]] = None
    timeout: Optional[Union[str, int, float]] = None
    retries: Optional[int] = None
    start_period: Optional[Union[str, int, float]] = None
    disable: bool = False


class ComposeDependsOn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    condition: str = "service_started"
    required: bool = True
    restart: bool = False


class ComposeService(BaseModel):
    model_config = ConfigDict(extra="ignore")

    image: Optional[str] = None
    build: Optional[Union[str, ComposeBuild]] = None
    command: Optional[StringOrList] = None
    entrypoint: Optional[StringOrList] = None
    working_dir: Optional[str] = None
    user: Optional[str] = None
    hostname: Optional[str] = None
    environment: Optional[ListOrDict] = None
    env_file: Optional[StringOrList] = None
    ports: List[Union[str, int, ComposePort]] = []
    expose: List[Union[str, int]] = []
    volumes: List[Union[str, ComposeVolume]] = []
    networks: Optional[Union[List[str], Dict[str, Optional[ComposeServiceNetwork]]]] = None
    healthcheck: Optional[ComposeHealthCheck] = None
    restart: Optional[str] = None
    labels: Optional[ListOrDict] = None
    depends_on: Optional[Union[List[str], Dict[str, Optional[ComposeDependsOn]]]] = None


class ComposeFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    services: Dict[str, Optional[ComposeService]] = Field(default_factory=dict)
    networks: Optional[Dict[str, Optional[Dict[str, Any]]]] = None
    volumes: Optional[Dict[str, Optional[Dict[str, Any]]]] = None
