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
Renaming of services so several copies of a stack can share one runtime.
"""
from ..errors import ProjectLoadError
from ..MODELS.compose_project import ComposeProject
from ..MODELS.service_definition import NetworkAttachment, ServiceDefinition


class NameResolver:
    """
    Applies a prefix and suffix to every service name and rewrites all
    references so the renamed project stays consistent.
    """
    def __init__(self, prefix: str = "", suffix: str = ""):
        self.prefix = prefix
        self.suffix = suffix

    def transform(self, name: str) -> str:
        return f"{self.prefix}{name}{self.suffix}"

    def apply(self, project: ComposeProject) -> ComposeProject:
        """
        Renames every service of the project.

        Each service also gets its transformed name as hostname (unless one is
        set) and keeps its manifest name as a network alias, so services still
        find each other under the names used in the compose file.

        :param project: The project with manifest names.
        :return: A new project with transformed names.
        :raises ProjectLoadError: If two services end up with the same name.
        """
        services = [self._rename(svc) for svc in project.services]

        seen = set()
        for svc in services:
            if svc.name in seen:
                raise ProjectLoadError(f"duplicate service name after renaming: {svc.name}")
            seen.add(svc.name)

        return project.model_copy(update={
            "services": services,
            "name_prefix": project.name_prefix + self.prefix,
            "name_suffix": self.suffix + project.name_suffix,
        })

    def _rename(self, svc: ServiceDefinition) -> ServiceDefinition:
        name = self.transform(svc.name)
        manifest_name = svc.manifest_name or svc.name
        return svc.model_copy(update={
            "name": name,
            "manifest_name": manifest_name,
            "hostname": svc.hostname or name,
            "depends_on": {self.transform(dep): spec for dep, spec in svc.depends_on.items()},
            "networks": [self._alias(net, manifest_name) for net in svc.networks],
        })

    def _alias(self, network: NetworkAttachment, alias: str) -> NetworkAttachment:
        if alias in network.aliases:
            return network
        return network.model_copy(update={"aliases": [alias] + list(network.aliases)})
