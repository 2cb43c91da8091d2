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
Models for the observed state of a container, as returned by an inspect call.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel
from enum import Enum


class HealthStatus(str, Enum):
    """Health status reported by the runtime."""

    STARTING = "starting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    NONE = "none"  # No health check configured


class HealthLogEntry(BaseModel):
    """One health probe run."""

    exit_code: int
    end: Optional[datetime] = None


class HealthState(BaseModel):
    """Last reported health of a container and its probe history."""

    status: str = HealthStatus.NONE.value
    failing_streak: int = 0
    log: List[HealthLogEntry] = []


class ContainerState(BaseModel):
    """Runtime state of a container."""

    running: bool = False
    exit_code: int = 0
    status: str = ""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    health: Optional[HealthState] = None
