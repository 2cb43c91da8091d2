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
Loading of a compose manifest into a launch-ready project.
"""
import os
from typing import Mapping, Optional
from ..MODELS.compose_project import ComposeProject
from ..MODELS.load_options import LoadOptions
from ..PARSERS.compose_parser import ComposeParser
from ..RUNNERS.dependency_resolver import DependencyResolver
from .environment_manager import EnvironmentMerger
from .name_resolver import NameResolver


class ProjectLoader:
    """
    Parses a manifest, orders its services, renames them and optionally
    overlays the host environment.
    """
    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        :param environ: Environment snapshot used for interpolation and merging.
            Defaults to a copy of os.environ taken now.
        """
        self.environ = dict(os.environ) if environ is None else dict(environ)
        self.resolver = DependencyResolver()

    def load(self, options: LoadOptions) -> ComposeProject:
        """
        Loads the project described by the options.

        :param options: Manifest location and naming configuration.
        :return: The resolved project.
        :raises ProjectLoadError: If the manifest is missing or invalid.
        """
        project = ComposeParser(self.environ).parse(options.manifest_path)
        project = self.resolver.sort(project)
        project = NameResolver(options.name_prefix, options.name_suffix).apply(project)
        if options.pull_env_from_system:
            project = EnvironmentMerger(self.environ).merge(project)
        return project


def load_project(options: LoadOptions, environ: Optional[Mapping[str, str]] = None) -> ComposeProject:
    """Shortcut for ProjectLoader(environ).load(options)."""
    return ProjectLoader(environ).load(options)
