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
Parsers for Docker Compose YAML files.
"""
import os
import shlex
import yaml
from typing import Dict, Any, List, Optional
from dotenv import dotenv_values
from pydantic import ValidationError
from ..errors import ProjectLoadError
from ..MODELS.compose_file import ComposeFile, ComposeService, ComposePort, ComposeVolume
from ..MODELS.compose_project import ComposeProject
from ..MODELS.service_definition import (
    BuildSpec,
    DependencyCondition,
    HealthCheck,
    NetworkAttachment,
    PortBinding,
    RestartPolicy,
    RestartPolicyCondition,
    ServiceDefinition,
    ServiceDependency,
    VolumeMount,
    VolumeType,
)
from ..UTILS.string_interpolation import EnvironmentInterpolator, InterpolationError
from ..UTILS.durations import parse_duration


class ComposeParser:
    """
    Parser for docker-compose.yml files.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None):
        """
        Initializes the parser with an environment snapshot used for interpolation.

        :param context: A dictionary of environment variables for interpolation.
        """
        self.context = dict(os.environ) if context is None else dict(context)
        self.base_dir = os.path.abspath(".")
        self.network_definitions: Dict[str, Dict[str, Any]] = {}

    def parse(self, compose_path: str) -> ComposeProject:
        """
        Parses a compose file from a path.

        :param compose_path: Path to the compose file.
        :return: The project, services in declaration order and names untouched.
        :raises ProjectLoadError: If the file is missing or invalid.
        """
        if not os.path.isfile(compose_path):
            raise ProjectLoadError("compose file not found", path=compose_path)
        try:
            with open(compose_path, 'r') as f:
                content = f.read()
        except OSError as e:
            raise ProjectLoadError(f"cannot read compose file: {e}", path=compose_path) from e

        base_dir = os.path.dirname(os.path.abspath(compose_path))
        try:
            return self.parse_from_string(content, base_dir=base_dir)
        except ProjectLoadError as e:
            if e.path:
                raise
            raise ProjectLoadError(str(e), path=compose_path) from e

    def parse_from_string(self, content: str, base_dir: str = ".",
                          project_name: Optional[str] = None) -> ComposeProject:
        """
        Parses a compose file from a string.

        :param content: YAML content of the compose file.
        :param base_dir: Directory relative paths are resolved against.
        :param project_name: Fallback project name when the file sets none.
        :return: The parsed project.
        """
        base_dir = os.path.abspath(base_dir)
        missing: List[str] = []
        try:
            content = EnvironmentInterpolator.interpolate(content, self.context, missing)
        except InterpolationError as e:
            raise ProjectLoadError(f"interpolation failed: {e}") from e
        for var_name in dict.fromkeys(missing):
            print(f"Warning: the {var_name} variable is not set. Defaulting to a blank string.")

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ProjectLoadError(f"invalid YAML: {e}") from e
        if not data:
            data = {}
        if not isinstance(data, dict):
            raise ProjectLoadError("top-level element must be a mapping")

        try:
            compose_file = ComposeFile.model_validate(data)
        except ValidationError as e:
            raise ProjectLoadError(f"invalid compose file: {e}") from e

        self.base_dir = base_dir
        self.network_definitions = {k: v or {} for k, v in (compose_file.networks or {}).items()}
        services = [
            self._parse_service(name, spec or ComposeService())
            for name, spec in compose_file.services.items()
        ]
        services = self._check_dependencies(services)

        name = compose_file.name or project_name or os.path.basename(base_dir) or "default"
        return ComposeProject(
            name=name.lower(),
            services=services,
            working_dir=base_dir,
            networks=list(compose_file.networks or {}),
            volumes=list(compose_file.volumes or {}),
        )

    def _check_dependencies(self, services: List[ServiceDefinition]) -> List[ServiceDefinition]:
        """
        Verifies every depends_on entry names a declared service.
        Unknown optional dependencies are dropped.
        """
        known = {svc.name for svc in services}
        checked = []
        for svc in services:
            depends_on = {}
            for dep, spec in svc.depends_on.items():
                if dep in known:
                    depends_on[dep] = spec
                elif spec.required:
                    raise ProjectLoadError(f"service {svc.name} depends on undefined service {dep}")
                else:
                    print(f"Warning: ignoring optional dependency {dep} of {svc.name}: not defined")
            checked.append(svc.model_copy(update={"depends_on": depends_on}))
        return checked

    def _parse_service(self, name: str, spec: ComposeService) -> ServiceDefinition:
        """
        Parses a single service definition from a compose file.

        :param name: The name of the service.
        :param spec: The validated service specification.
        :return: A ServiceDefinition instance.
        """
        build = self._parse_build(name, spec.build)
        if not spec.image and build is None:
            raise ProjectLoadError(f"service {name} has neither an image nor a build context")

        # Environment: env_file first, explicit entries override
        environment: Dict[str, str] = {}
        for env_file in self._to_list(spec.env_file):
            environment.update(self._load_env_file(name, env_file))
        environment.update(self._to_mapping(spec.environment, lookup=True))

        ports: List[PortBinding] = []
        for p in spec.ports:
            ports.extend(self._parse_port(name, p))

        return ServiceDefinition(
            name=name,
            manifest_name=name,
            image=spec.image or '',
            build=build,
            command=self._to_command(spec.command),
            entrypoint=self._to_command(spec.entrypoint),
            working_dir=spec.working_dir,
            user=spec.user,
            hostname=spec.hostname,
            environment=environment,
            ports=ports,
            expose=[str(e) for e in spec.expose],
            volumes=[self._parse_volume(name, v) for v in spec.volumes],
            networks=self._parse_networks(spec.networks),
            health_check=self._parse_healthcheck(name, spec),
            restart_policy=self._parse_restart(name, spec.restart),
            labels=self._to_mapping(spec.labels),
            depends_on=self._parse_depends_on(name, spec.depends_on),
        )

    def _parse_build(self, name: str, build: Any) -> Optional[BuildSpec]:
        if build is None:
            return None
        if isinstance(build, str):
            return BuildSpec(context=self._resolve_path(build))
        if build.dockerfile and build.dockerfile_inline:
            raise ProjectLoadError(f"service {name}: dockerfile and dockerfile_inline are mutually exclusive")
        return BuildSpec(
            context=self._resolve_path(build.context),
            dockerfile=build.dockerfile,
            dockerfile_inline=build.dockerfile_inline,
            args=self._to_mapping(build.args, lookup=True),
            target=build.target,
        )

    def _parse_port(self, name: str, port: Any) -> List[PortBinding]:
        """
        Parses a port in short ("[ip:][host:]container[/proto]") or long syntax.
        Ranges such as "8000-8001:80-81" expand to one binding per port.
        """
        if isinstance(port, ComposePort):
            published = str(port.published) if port.published is not None else None
            text = f"{published}:{port.target}" if published else str(port.target)
            return self._bind_ports(name, text, port.host_ip or '', published, str(port.target), port.protocol)

        text = str(port)
        protocol = 'tcp'
        if '/' in text:
            text, protocol = text.rsplit('/', 1)

        parts = text.split(':')
        host_ip, published = '', None
        if len(parts) == 1:
            target = parts[0]
        elif len(parts) == 2:
            published, target = parts
        elif len(parts) == 3:
            host_ip, published, target = parts
        else:
            raise ProjectLoadError(f"service {name}: invalid port specification {port!r}")
        return self._bind_ports(name, port, host_ip, published, target, protocol)

    def _bind_ports(self, name: str, port: Any, host_ip: str, published: Optional[str],
                    target: str, protocol: str) -> List[PortBinding]:
        targets = self._expand_range(name, target)
        if not published:
            return [PortBinding(target=t, host_ip=host_ip, protocol=protocol) for t in targets]

        published_ports = self._expand_range(name, published)
        if len(published_ports) == 1 and len(targets) > 1:
            # A single host port for a container range publishes the first one only
            published_ports = published_ports + [None] * (len(targets) - 1)
        if len(published_ports) != len(targets):
            raise ProjectLoadError(f"service {name}: port ranges don't match in {port!r}")
        return [
            PortBinding(target=t, published=p, host_ip=host_ip, protocol=protocol)
            for t, p in zip(targets, published_ports)
        ]

    def _expand_range(self, name: str, value: str) -> List[str]:
        if '-' not in value:
            return [value]
        start, end = value.split('-', 1)
        if not (start.isdigit() and end.isdigit()) or int(end) < int(start):
            raise ProjectLoadError(f"service {name}: invalid port range {value!r}")
        return [str(p) for p in range(int(start), int(end) + 1)]

    def _parse_volume(self, name: str, volume: Any) -> VolumeMount:
        if isinstance(volume, ComposeVolume):
            if volume.type not in (VolumeType.BIND.value, VolumeType.VOLUME.value):
                raise ProjectLoadError(f"service {name}: unsupported volume type {volume.type!r}")
            source = volume.source or ''
            if volume.type == VolumeType.BIND.value and source:
                source = self._resolve_path(source)
            return VolumeMount(
                type=VolumeType(volume.type),
                source=source,
                target=volume.target,
                read_only=volume.read_only,
            )

        parts = volume.split(':')
        if len(parts) == 1:
            # Anonymous volume
            return VolumeMount(type=VolumeType.VOLUME, target=parts[0])
        if len(parts) > 3:
            raise ProjectLoadError(f"service {name}: invalid volume specification {volume!r}")

        source, target = parts[0], parts[1]
        read_only = len(parts) == 3 and 'ro' in parts[2].split(',')
        if self._is_host_path(source):
            return VolumeMount(type=VolumeType.BIND, source=self._resolve_path(source),
                               target=target, read_only=read_only)
        return VolumeMount(type=VolumeType.VOLUME, source=source, target=target, read_only=read_only)

    def _parse_networks(self, networks: Any) -> List[NetworkAttachment]:
        """
        Resolves the networks a service joins through the top-level networks section.

        The "default" network, unless renamed there, is the runtime's own
        default network and yields no attachment.
        """
        if not networks:
            return []
        if isinstance(networks, list):
            entries = [(n, []) for n in networks]
        else:
            entries = [(n, list(cfg.aliases) if cfg else []) for n, cfg in networks.items()]

        attachments = []
        for key, aliases in entries:
            definition = self.network_definitions.get(key, {})
            external = definition.get('external') or False
            name = definition.get('name')
            if isinstance(external, dict):
                # Legacy form: external: {name: ...}
                name = name or external.get('name')
                external = True
            if key == 'default' and not name:
                continue
            attachments.append(NetworkAttachment(name=name or key, aliases=aliases, external=bool(external)))
        return attachments

    def _parse_healthcheck(self, name: str, spec: ComposeService) -> Optional[HealthCheck]:
        hc = spec.healthcheck
        if hc is None:
            return None
        test = hc.test
        if isinstance(test, str):
            test = ['CMD-SHELL', test]
        try:
            return HealthCheck(
                test=list(test or []),
                interval=parse_duration(hc.interval),
                timeout=parse_duration(hc.timeout),
                retries=hc.retries,
                start_period=parse_duration(hc.start_period),
                disable=hc.disable,
            )
        except ValueError as e:
            raise ProjectLoadError(f"service {name}: invalid healthcheck: {e}") from e

    def _parse_restart(self, name: str, restart: Optional[str]) -> Optional[RestartPolicy]:
        if not restart:
            return None
        condition, _, retries = restart.partition(':')
        try:
            return RestartPolicy(
                condition=RestartPolicyCondition(condition),
                max_retries=int(retries) if retries else 0,
            )
        except ValueError as e:
            raise ProjectLoadError(f"service {name}: invalid restart policy {restart!r}") from e

    def _parse_depends_on(self, name: str, depends_on: Any) -> Dict[str, ServiceDependency]:
        if not depends_on:
            return {}
        if isinstance(depends_on, list):
            return {dep: ServiceDependency() for dep in depends_on}

        result = {}
        for dep, cfg in depends_on.items():
            if cfg is None:
                result[dep] = ServiceDependency()
                continue
            try:
                condition = DependencyCondition(cfg.condition)
            except ValueError as e:
                raise ProjectLoadError(
                    f"service {name}: unknown depends_on condition {cfg.condition!r} for {dep}"
                ) from e
            result[dep] = ServiceDependency(condition=condition, required=cfg.required)
        return result

    def _load_env_file(self, name: str, env_file: str) -> Dict[str, str]:
        path = self._resolve_path(env_file)
        if not os.path.isfile(path):
            raise ProjectLoadError(f"service {name}: env file {path} not found")
        return {k: v or '' for k, v in dotenv_values(path).items()}

    def _to_mapping(self, value: Any, lookup: bool = False) -> Dict[str, str]:
        """
        Normalizes a list of KEY=VALUE strings or a mapping into a string dict.

        :param value: The list or mapping from the compose file.
        :param lookup: Resolve entries without a value from the environment snapshot.
        """
        if not value:
            return {}
        if isinstance(value, list):
            items = []
            for entry in value:
                if '=' in entry:
                    items.append(tuple(entry.split('=', 1)))
                else:
                    items.append((entry, None))
        else:
            items = list(value.items())

        result = {}
        for key, val in items:
            if val is None:
                if lookup and key in self.context:
                    result[key] = self.context[key]
                elif not lookup:
                    result[key] = ''
                continue
            result[key] = self._to_str(val)
        return result

    def _to_str(self, value: Any) -> str:
        if isinstance(value, bool):
            return 'true' if value else 'false'
        return str(value)

    def _to_command(self, val: Any) -> Optional[List[str]]:
        if val is None:
            return None
        if isinstance(val, str):
            return shlex.split(val)
        return [str(v) for v in val]

    def _to_list(self, val: Any) -> List[str]:
        """
        Helper to ensure a value is a list of strings.

        :param val: The value to convert.
        :return: A list of strings.
        """
        if val is None:
            return []
        if isinstance(val, str):
            return [val]
        return list(val)

    def _is_host_path(self, source: str) -> bool:
        return source.startswith(('/', '.', '~'))

    def _resolve_path(self, path: str) -> str:
        path = os.path.expanduser(path)
        if os.path.isabs(path):
            return os.path.normpath(path)
        return os.path.normpath(os.path.join(self.base_dir, path))
