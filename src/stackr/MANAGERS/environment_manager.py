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
Managers for overlaying the host environment onto service environments.
"""
from typing import Dict, Mapping
from ..MODELS.compose_project import ComposeProject
from ..MODELS.service_definition import ServiceDefinition


class EnvironmentMerger:
    """
    Adds host environment variables to each service without overriding
    anything the service sets explicitly.
    """
    def __init__(self, host_env: Mapping[str, str]):
        """
        Initializes the merger.

        :param host_env: Snapshot of the invoking process environment.
        """
        self.host_env: Dict[str, str] = dict(host_env)

    def get_merged_environment(self, explicit_env: Dict[str, str]) -> Dict[str, str]:
        """
        Merges the host snapshot and explicit environment variable definitions.

        :param explicit_env: A dictionary of explicitly defined environment variables.
        :return: A dictionary containing the merged environment variables.
        """
        merged_env = dict(self.host_env)
        # Explicit environment variables override everything
        merged_env.update(explicit_env)
        return merged_env

    def merge_service(self, svc: ServiceDefinition) -> ServiceDefinition:
        return svc.model_copy(update={"environment": self.get_merged_environment(svc.environment)})

    def merge(self, project: ComposeProject) -> ComposeProject:
        return project.model_copy(update={
            "services": [self.merge_service(svc) for svc in project.services],
        })
