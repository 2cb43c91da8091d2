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
Models for a loaded compose project.
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from .service_definition import ServiceDefinition


class ComposeProject(BaseModel):
    """
    Complete, resolved configuration for a multi-service stack.

    Services are kept in launch order: every service appears after the
    services it depends on.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    services: List[ServiceDefinition] = []
    name_prefix: str = ""
    name_suffix: str = ""
    working_dir: str = "."
    networks: List[str] = []
    volumes: List[str] = []

    def service_names(self) -> List[str]:
        return [svc.name for svc in self.services]

    def get_service(self, name: str) -> Optional[ServiceDefinition]:
        for svc in self.services:
            if svc.name == name:
                return svc
        return None

    def replace_service(self, service: ServiceDefinition) -> "ComposeProject":
        """
        Returns a new project in which the service of the same name is replaced.

        :param service: The updated service record.
        :return: A new ComposeProject snapshot.
        :raises KeyError: If the project has no service with that name.
        """
        if self.get_service(service.name) is None:
            raise KeyError(service.name)
        services = [service if svc.name == service.name else svc for svc in self.services]
        return self.model_copy(update={"services": services})
