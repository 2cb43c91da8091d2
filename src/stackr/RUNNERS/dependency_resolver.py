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
Dependency resolution for services to determine startup order.
"""
from typing import List
from ..errors import ProjectLoadError
from ..MODELS.compose_project import ComposeProject


class DependencyResolver:
    """
    Resolves the startup order of services based on their dependencies.
    """
    def resolve_order(self, project: ComposeProject) -> List[str]:
        """
        Determines the order to start services using a topological sort.

        Services without a dependency relationship keep their declaration order.

        :param project: The parsed project.
        :return: Service names in the order they should be started.
        :raises ProjectLoadError: If a circular dependency is detected.
        """
        dependencies = {svc.name: list(svc.depends_on) for svc in project.services}

        ordered = []
        visited = set()
        processing = []

        def visit(name):
            """
            Recursive function for topological sort.
            """
            if name in processing:
                cycle = processing[processing.index(name):] + [name]
                raise ProjectLoadError(f"dependency cycle detected: {' -> '.join(cycle)}")
            if name not in visited:
                processing.append(name)
                for dep in dependencies.get(name, []):
                    if dep in dependencies:
                        visit(dep)
                processing.pop()
                visited.add(name)
                ordered.append(name)

        for name in dependencies:
            visit(name)

        return ordered

    def sort(self, project: ComposeProject) -> ComposeProject:
        """
        Returns the project with its services in startup order.
        """
        order = self.resolve_order(project)
        by_name = {svc.name: svc for svc in project.services}
        return project.model_copy(update={"services": [by_name[name] for name in order]})
