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
Translation of service definitions into runtime-native resource descriptions.
"""
import posixpath
from typing import Dict, List, Optional, Tuple
from ..errors import TranslationError
from ..MODELS.runtime_spec import (
    BuildRequest,
    ContainerSpec,
    EndpointSpec,
    HealthCheckSpec,
    HostSpec,
    NetworkSpec,
    ResourceTriplet,
)
from ..MODELS.service_definition import (
    HealthCheck,
    PortBinding,
    RestartPolicy,
    RestartPolicyCondition,
    ServiceDefinition,
    VolumeType,
)
from ..UTILS.durations import to_nanoseconds

LABEL_PREFIX = "stackr"
PROTOCOLS = ("tcp", "udp", "sctp")


class ResourceTranslator:
    """
    Maps one service onto the container, host and network specifications
    used to create its container. Translation has no side effects and gives
    equal results for equal services.
    """
    def __init__(self, project_name: Optional[str] = None):
        """
        :param project_name: Recorded as a label on every container when set.
        """
        self.project_name = project_name

    def translate(self, service: ServiceDefinition) -> ResourceTriplet:
        """
        Translates a service into its runtime resource triplet.

        :param service: The resolved service.
        :return: The container, host and network specifications.
        :raises TranslationError: If the service cannot be expressed for the runtime.
        """
        image = service.image or (service.name if service.build else "")
        if not image:
            raise TranslationError(service.name, "no image to run")

        exposed, bindings = self._translate_ports(service)
        binds, mounts = self._translate_volumes(service)
        endpoints = {
            net.name: EndpointSpec(aliases=list(net.aliases))
            for net in service.networks
        }

        container = ContainerSpec(
            image=image,
            hostname=service.hostname,
            command=service.command,
            entrypoint=service.entrypoint,
            working_dir=service.working_dir,
            user=service.user,
            environment=[f"{k}={v}" for k, v in sorted(service.environment.items())],
            exposed_ports=exposed,
            labels=self._labels(service),
            healthcheck=self._translate_healthcheck(service.health_check),
        )
        host = HostSpec(
            port_bindings=bindings,
            binds=binds,
            mounts=mounts,
            restart_policy=self._translate_restart(service.restart_policy),
            network_mode=service.networks[0].name if service.networks else None,
        )
        return ResourceTriplet(container=container, host=host, network=NetworkSpec(endpoints=endpoints))

    def build_request(self, service: ServiceDefinition) -> BuildRequest:
        """
        Describes the image build of a service. The image is tagged with the
        declared image name, or the service name when none is declared.

        :raises TranslationError: If the service has no build section.
        """
        build = service.build
        if build is None:
            raise TranslationError(service.name, "service has no build section")
        return BuildRequest(
            tag=service.image or service.name,
            context=build.context,
            dockerfile=build.dockerfile,
            dockerfile_inline=build.dockerfile_inline,
            args=dict(build.args),
            target=build.target,
        )

    def _labels(self, service: ServiceDefinition) -> Dict[str, str]:
        labels = dict(service.labels)
        labels[f"{LABEL_PREFIX}.service"] = service.manifest_name or service.name
        if self.project_name:
            labels[f"{LABEL_PREFIX}.project"] = self.project_name
        return labels

    def _translate_ports(self, service: ServiceDefinition) -> Tuple[List[str], Dict[str, List[Tuple[str, str]]]]:
        exposed: List[str] = []
        bindings: Dict[str, List[Tuple[str, str]]] = {}
        used_host_ports: Dict[Tuple[str, str, str], str] = {}

        for entry in service.expose:
            target, _, protocol = entry.partition('/')
            key = self._port_key(service.name, PortBinding(target=target, protocol=protocol or 'tcp'))
            if key not in exposed:
                exposed.append(key)

        for port in service.ports:
            key = self._port_key(service.name, port)
            if key not in exposed:
                exposed.append(key)

            host_port = ""
            if port.published:
                self._check_port(service.name, port.published)
                host_port = port.published
                host_key = (port.host_ip or "0.0.0.0", host_port, port.protocol)
                if host_key in used_host_ports:
                    raise TranslationError(
                        service.name,
                        f"host port {host_port}/{port.protocol} is bound to both "
                        f"{used_host_ports[host_key]} and {key}",
                    )
                used_host_ports[host_key] = key
            bindings.setdefault(key, []).append((port.host_ip, host_port))

        return exposed, bindings

    def _port_key(self, name: str, port: PortBinding) -> str:
        self._check_port(name, port.target)
        if port.protocol not in PROTOCOLS:
            raise TranslationError(name, f"unsupported protocol {port.protocol!r}")
        return f"{port.target}/{port.protocol}"

    def _check_port(self, name: str, value: str) -> None:
        if not value.isdigit() or not 0 < int(value) < 65536:
            raise TranslationError(name, f"invalid port {value!r}")

    def _translate_volumes(self, service: ServiceDefinition) -> Tuple[List[str], List[Dict[str, object]]]:
        binds: List[str] = []
        mounts: List[Dict[str, object]] = []
        targets = set()

        for mount in service.volumes:
            if not posixpath.isabs(mount.target):
                raise TranslationError(service.name, f"volume target {mount.target!r} must be an absolute path")
            if mount.target in targets:
                raise TranslationError(service.name, f"duplicate mount point {mount.target}")
            targets.add(mount.target)

            if mount.type == VolumeType.BIND:
                if not mount.source:
                    raise TranslationError(service.name, f"bind mount for {mount.target} has no host path")
                if not posixpath.isabs(mount.source):
                    raise TranslationError(service.name, f"bind source {mount.source!r} must be an absolute path")
                binds.append(f"{mount.source}:{mount.target}" + (":ro" if mount.read_only else ""))
            else:
                spec: Dict[str, object] = {"Type": "volume", "Target": mount.target, "ReadOnly": mount.read_only}
                if mount.source:
                    spec["Source"] = mount.source
                mounts.append(spec)

        return binds, mounts

    def _translate_healthcheck(self, hc: Optional[HealthCheck]) -> Optional[HealthCheckSpec]:
        if hc is None:
            return None
        if hc.disable or hc.test[:1] == ["NONE"]:
            return HealthCheckSpec(test=["NONE"])
        return HealthCheckSpec(
            test=list(hc.test),
            interval=to_nanoseconds(hc.interval),
            timeout=to_nanoseconds(hc.timeout),
            retries=hc.retries,
            start_period=to_nanoseconds(hc.start_period),
        )

    def _translate_restart(self, policy: Optional[RestartPolicy]) -> Optional[Dict[str, object]]:
        if policy is None:
            return None
        spec: Dict[str, object] = {"Name": policy.condition.value}
        if policy.condition == RestartPolicyCondition.ON_FAILURE and policy.max_retries:
            spec["MaximumRetryCount"] = policy.max_retries
        return spec
