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
Interface between the launcher and a container runtime.
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from ..MODELS.container_state import ContainerState
from ..MODELS.runtime_spec import BuildRequest, ResourceTriplet


class RuntimeClient(ABC):
    """
    Operations the launcher needs from a container runtime.
    Implementations raise RuntimeClientError when a call fails.
    """

    @abstractmethod
    def pull_image(self, ref: str) -> None:
        """Pull an image by reference."""

    @abstractmethod
    def build_image(self, request: BuildRequest) -> str:
        """Build an image and return the reference it was tagged with."""

    @abstractmethod
    def create_container(self, name: str, resources: ResourceTriplet) -> str:
        """Create a named container and return its runtime ID."""

    @abstractmethod
    def start_container(self, container_id: str) -> None:
        """Start a created container."""

    @abstractmethod
    def inspect(self, name: str) -> ContainerState:
        """Return the current state of a container."""

    @abstractmethod
    def remove_container(self, name: str, force: bool = False, remove_volumes: bool = False) -> None:
        """Remove a container."""

    @abstractmethod
    def remove_image(self, ref: str, force: bool = False, prune_children: bool = True) -> None:
        """Remove an image."""

    @abstractmethod
    def list_containers(self, name_filter: Optional[str] = None) -> List[str]:
        """Return the IDs of all containers whose name matches the filter."""

    def ensure_network(self, name: str) -> None:
        """Create a network unless it exists. No-op by default."""

    def ensure_volume(self, name: str) -> None:
        """Create a named volume unless it exists. No-op by default."""

    def close(self) -> None:
        """Release connections held by the client. No-op by default."""
