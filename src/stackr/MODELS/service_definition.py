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
Models for defining services, including restart policies, health checks, mounts
and dependency conditions.
"""
from typing import List, Dict, Optional
from pydantic import BaseModel, ConfigDict
from enum import Enum


class RestartPolicyCondition(str, Enum):
    """
    Conditions under which a service should be restarted.
    """
    NO = "no"
    ALWAYS = "always"
    ON_FAILURE = "on-failure"
    UNLESS_STOPPED = "unless-stopped"


class DependencyCondition(str, Enum):
    """
    Readiness a dependency must reach before its dependent is launched.
    """
    STARTED = "service_started"
    HEALTHY = "service_healthy"
    COMPLETED_SUCCESSFULLY = "service_completed_successfully"


class VolumeType(str, Enum):
    """
    Bind mounts are backed by a host path, named volumes are owned by the runtime.
    """
    BIND = "bind"
    VOLUME = "volume"


class RestartPolicy(BaseModel):
    """
    Defines how the runtime restarts a container on exit.
    """
    model_config = ConfigDict(frozen=True)

    condition: RestartPolicyCondition = RestartPolicyCondition.NO
    max_retries: int = 0


class HealthCheck(BaseModel):
    """
    Defines a command to run to check the health of a service.
    Durations are in seconds.
    """
    model_config = ConfigDict(frozen=True)

    test: List[str] = []
    interval: Optional[float] = None
    timeout: Optional[float] = None
    retries: Optional[int] = None
    start_period: Optional[float] = None
    disable: bool = False


class VolumeMount(BaseModel):
    """
    Defines a mapping between a host path or named volume and a container path.
    """
    model_config = ConfigDict(frozen=True)

    type: VolumeType = VolumeType.VOLUME
    source: str = ""
    target: str
    read_only: bool = False


class PortBinding(BaseModel):
    """
    A container port, optionally published on the host.
    """
    model_config = ConfigDict(frozen=True)

    target: str
    published: Optional[str] = None
    host_ip: str = ""
    protocol: str = "tcp"


class NetworkAttachment(BaseModel):
    """
    A network the service joins, with the extra names it answers to there.
    External networks are expected to exist already and are never created.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    aliases: List[str] = []
    external: bool = False


class BuildSpec(BaseModel):
    """
    How to build the image of a service instead of pulling it.
    """
    model_config = ConfigDict(frozen=True)

    context: str
    dockerfile: Optional[str] = None
    dockerfile_inline: Optional[str] = None
    args: Dict[str, str] = {}
    target: Optional[str] = None


class ServiceDependency(BaseModel):
    """
    A depends_on entry: the condition to wait for and whether it is mandatory.
    """
    model_config = ConfigDict(frozen=True)

    condition: DependencyCondition = DependencyCondition.STARTED
    required: bool = True


class ServiceDefinition(BaseModel):
    """
    The full definition of a single service, translated from Docker Compose.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    manifest_name: str = ""
    image: str = ""
    build: Optional[BuildSpec] = None

    # Execution
    command: Optional[List[str]] = None
    entrypoint: Optional[List[str]] = None
    working_dir: Optional[str] = None
    user: Optional[str] = None

    # Environment
    environment: Dict[str, str] = {}

    # Networking
    ports: List[PortBinding] = []
    expose: List[str] = []
    networks: List[NetworkAttachment] = []
    hostname: Optional[str] = None

    # Storage
    volumes: List[VolumeMount] = []

    # Lifecycle
    restart_policy: Optional[RestartPolicy] = None
    health_check: Optional[HealthCheck] = None
    depends_on: Dict[str, ServiceDependency] = {}

    # Metadata
    labels: Dict[str, str] = {}
