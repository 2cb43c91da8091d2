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
Container runtime backed by a Docker daemon through the Docker SDK for Python.
"""
import io
import os
import re
import tarfile
from datetime import datetime
from typing import Any, Dict, List, Optional

import docker
from docker.errors import DockerException, NotFound
from docker.utils import parse_repository_tag

from ..errors import RuntimeClientError
from ..MODELS.container_state import ContainerState, HealthLogEntry, HealthState
from ..MODELS.runtime_spec import BuildRequest, ResourceTriplet
from .base import RuntimeClient

INLINE_DOCKERFILE = ".stackr.inline.Dockerfile"
LABEL_PREFIX = "stackr"

# Docker reports nanoseconds; Python datetimes stop at microseconds
_FRACTION = re.compile(r'\.(\d+)')
_ZERO_TIME = "0001-01-01T00:00:00Z"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value or value == _ZERO_TIME:
        return None
    value = _FRACTION.sub(lambda m: '.' + (m.group(1) + '000000')[:6], value, count=1)
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    return datetime.fromisoformat(value)


class DockerRuntime(RuntimeClient):
    """
    RuntimeClient talking to the local Docker daemon.
    """

    def __init__(self, client: Optional[docker.DockerClient] = None):
        """
        Initialize the runtime.

        Args:
            client: Docker client to use. Defaults to docker.from_env().
        """
        try:
            self._client = client or docker.from_env()
        except DockerException as e:
            raise RuntimeClientError(f"cannot connect to docker: {e}") from e
        self._api = self._client.api

    def close(self) -> None:
        self._client.close()

    def pull_image(self, ref: str) -> None:
        repository, tag = parse_repository_tag(ref)
        try:
            # Without a tag the SDK would pull every tag of the repository
            self._client.images.pull(repository, tag=tag or "latest")
        except DockerException as e:
            raise RuntimeClientError(f"pull image {ref}: {e}") from e

    def build_image(self, request: BuildRequest) -> str:
        """
        Build an image from a context directory.

        An inline Dockerfile is added to a tar of the context, which is then
        sent as a custom build context.
        """
        kwargs: Dict[str, Any] = {
            "tag": request.tag,
            "buildargs": dict(request.args) or None,
            "target": request.target,
            "labels": dict(request.labels) or None,
            "rm": True,
        }
        try:
            if request.dockerfile_inline is not None:
                with self._inline_context(request) as context:
                    self._client.images.build(
                        fileobj=context,
                        custom_context=True,
                        dockerfile=INLINE_DOCKERFILE,
                        **kwargs,
                    )
            else:
                self._client.images.build(
                    path=request.context,
                    dockerfile=request.dockerfile,
                    **kwargs,
                )
        except (DockerException, OSError) as e:
            raise RuntimeClientError(f"build image {request.tag}: {e}") from e
        return request.tag

    def _inline_context(self, request: BuildRequest) -> io.BytesIO:
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w") as tar:
            if os.path.isdir(request.context):
                for entry in sorted(os.listdir(request.context)):
                    tar.add(os.path.join(request.context, entry), arcname=entry)
            content = request.dockerfile_inline.encode("utf-8")
            info = tarfile.TarInfo(INLINE_DOCKERFILE)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
        buffer.seek(0)
        return buffer

    def create_container(self, name: str, resources: ResourceTriplet) -> str:
        container = resources.container
        host = resources.host
        host_config = self._api.create_host_config(
            port_bindings=host.port_bindings or None,
            binds=host.binds or None,
            mounts=host.mounts or None,
            restart_policy=host.restart_policy,
            network_mode=host.network_mode,
        )
        networking_config = None
        if resources.network.endpoints:
            networking_config = self._api.create_networking_config({
                net: self._api.create_endpoint_config(aliases=endpoint.aliases or None)
                for net, endpoint in resources.network.endpoints.items()
            })
        healthcheck = None
        if container.healthcheck is not None:
            healthcheck = container.healthcheck.model_dump(exclude_none=True)

        try:
            resp = self._api.create_container(
                image=container.image,
                name=name,
                hostname=container.hostname,
                command=container.command,
                entrypoint=container.entrypoint,
                working_dir=container.working_dir,
                user=container.user,
                environment=container.environment,
                ports=[tuple(p.split('/', 1)) for p in container.exposed_ports] or None,
                labels=container.labels,
                healthcheck=healthcheck,
                host_config=host_config,
                networking_config=networking_config,
                detach=True,
            )
        except DockerException as e:
            raise RuntimeClientError(f"create container {name}: {e}") from e
        return resp["Id"]

    def start_container(self, container_id: str) -> None:
        try:
            self._api.start(container_id)
        except DockerException as e:
            raise RuntimeClientError(f"start container {container_id[:12]}: {e}") from e

    def inspect(self, name: str) -> ContainerState:
        try:
            info = self._api.inspect_container(name)
        except DockerException as e:
            raise RuntimeClientError(f"inspect container {name}: {e}") from e

        state = info.get("State") or {}
        health = None
        if state.get("Health"):
            health = HealthState(
                status=state["Health"].get("Status", ""),
                failing_streak=state["Health"].get("FailingStreak", 0),
                log=[
                    HealthLogEntry(exit_code=entry.get("ExitCode", -1), end=_parse_timestamp(entry.get("End")))
                    for entry in state["Health"].get("Log") or []
                ],
            )
        return ContainerState(
            running=state.get("Running", False),
            exit_code=state.get("ExitCode", 0),
            status=state.get("Status", ""),
            started_at=_parse_timestamp(state.get("StartedAt")),
            finished_at=_parse_timestamp(state.get("FinishedAt")),
            health=health,
        )

    def remove_container(self, name: str, force: bool = False, remove_volumes: bool = False) -> None:
        try:
            self._api.remove_container(name, v=remove_volumes, force=force)
        except NotFound:
            return
        except DockerException as e:
            raise RuntimeClientError(f"remove container {name}: {e}") from e

    def remove_image(self, ref: str, force: bool = False, prune_children: bool = True) -> None:
        try:
            self._api.remove_image(ref, force=force, noprune=not prune_children)
        except NotFound:
            return
        except DockerException as e:
            raise RuntimeClientError(f"remove image {ref}: {e}") from e

    def list_containers(self, name_filter: Optional[str] = None) -> List[str]:
        filters = {"name": name_filter} if name_filter else None
        try:
            containers = self._api.containers(all=True, filters=filters)
        except DockerException as e:
            raise RuntimeClientError(f"list containers: {e}") from e
        return [c["Id"] for c in containers]

    def ensure_network(self, name: str) -> None:
        try:
            self._client.networks.get(name)
        except NotFound:
            try:
                self._client.networks.create(
                    name,
                    driver="bridge",
                    labels={f"{LABEL_PREFIX}.managed": "true"},
                )
            except DockerException as e:
                raise RuntimeClientError(f"create network {name}: {e}") from e
        except DockerException as e:
            raise RuntimeClientError(f"inspect network {name}: {e}") from e

    def ensure_volume(self, name: str) -> None:
        try:
            self._client.volumes.get(name)
        except NotFound:
            try:
                self._client.volumes.create(name, labels={f"{LABEL_PREFIX}.managed": "true"})
            except DockerException as e:
                raise RuntimeClientError(f"create volume {name}: {e}") from e
        except DockerException as e:
            raise RuntimeClientError(f"inspect volume {name}: {e}") from e
