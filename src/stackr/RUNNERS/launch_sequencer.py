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
Launching the services of a project, one after the other, in project order.
"""
import threading
import time
from typing import Dict, Optional, Tuple

from pydantic import BaseModel

from ..BUILDERS.resource_translator import ResourceTranslator
from ..errors import (
    ContainerRuntimeError,
    DependencyError,
    ImageAcquisitionError,
    RuntimeClientError,
    StackrError,
)
from ..MODELS.compose_project import ComposeProject
from ..MODELS.runtime_spec import ResourceTriplet
from ..MODELS.service_definition import ServiceDefinition, VolumeType
from ..RUNTIME.base import RuntimeClient
from .condition_waiter import DependencyWaiter


class LaunchResult(BaseModel):
    """Outcome of a completed launch."""

    project: ComposeProject
    container_ids: Dict[str, str] = {}


class LaunchSequencer:
    """
    Starts every service of a project in order, stopping at the first failure.

    Project order already places dependencies first, so services are
    launched strictly one at a time. Containers started before a failure
    are left running.
    """

    def __init__(self, runtime: RuntimeClient, waiter: Optional[DependencyWaiter] = None):
        """
        :param runtime: Runtime the containers are created on.
        :param waiter: Waiter for dependency conditions. Defaults to one polling the same runtime.
        """
        self.runtime = runtime
        self.waiter = waiter or DependencyWaiter(runtime)

    def launch(
        self,
        project: ComposeProject,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> LaunchResult:
        """
        Launches the project.

        :param project: The resolved project.
        :param timeout: Seconds the whole launch may spend waiting on dependencies.
        :param cancel_event: Aborts a pending dependency wait when set.
        :return: The final project (with built image names filled in) and container IDs.
        :raises StackrError: The first failure, naming the service it happened on.
        """
        deadline = time.monotonic() + timeout if timeout is not None else None
        translator = ResourceTranslator(project.name)
        container_ids: Dict[str, str] = {}

        for name in project.service_names():
            service = project.get_service(name)
            print(f"\nPreparing service: {service.name}")

            self._wait_for_dependencies(service, deadline, cancel_event)
            project, service = self._acquire_image(project, service, translator)

            resources = translator.translate(service)
            container_ids[service.name] = self._create_and_start(service, resources)

        return LaunchResult(project=project, container_ids=container_ids)

    def _wait_for_dependencies(
        self,
        service: ServiceDefinition,
        deadline: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> None:
        for dep_name, dep in service.depends_on.items():
            try:
                self.waiter.wait(dep_name, dep.condition, deadline, cancel_event)
            except StackrError as e:
                raise DependencyError(service.name, dep_name, dep.condition.value, str(e)) from e

    def _acquire_image(
        self,
        project: ComposeProject,
        service: ServiceDefinition,
        translator: ResourceTranslator,
    ) -> Tuple[ComposeProject, ServiceDefinition]:
        """
        Builds the image of the service, or pulls it when there is no build section.

        A built service without an image name takes its own name as image,
        and a new project snapshot holding the updated service is returned.
        """
        if service.build is None:
            print(f"Pulling image: {service.image}")
            try:
                self.runtime.pull_image(service.image)
            except RuntimeClientError as e:
                raise ImageAcquisitionError(service.name, service.image, "pull", str(e)) from e
            return project, service

        request = translator.build_request(service)
        try:
            self.runtime.build_image(request)
        except RuntimeClientError as e:
            raise ImageAcquisitionError(service.name, request.tag, "build", str(e)) from e

        if not service.image:
            service = service.model_copy(update={"image": service.name})
            project = project.replace_service(service)
        print(f"Built image: {service.image}")
        return project, service

    def _create_and_start(self, service: ServiceDefinition, resources: ResourceTriplet) -> str:
        try:
            for network in service.networks:
                if not network.external:
                    self.runtime.ensure_network(network.name)
            for mount in service.volumes:
                if mount.type == VolumeType.VOLUME and mount.source:
                    self.runtime.ensure_volume(mount.source)
            container_id = self.runtime.create_container(service.name, resources)
        except RuntimeClientError as e:
            raise ContainerRuntimeError(service.name, "create", reason=str(e)) from e

        print(f"Starting container {service.name} (ID: {container_id[:12]})")
        try:
            self.runtime.start_container(container_id)
        except RuntimeClientError as e:
            raise ContainerRuntimeError(service.name, "start", container_id, str(e)) from e
        return container_id


def launch_project(
    project: ComposeProject,
    runtime: RuntimeClient,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> LaunchResult:
    """Launches a project with a default LaunchSequencer."""
    return LaunchSequencer(runtime).launch(project, timeout=timeout, cancel_event=cancel_event)
