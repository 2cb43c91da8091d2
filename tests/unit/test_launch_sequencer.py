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
Unit tests for the launch sequencer, against an in-memory runtime.
"""
import time
import pytest
from stackr.errors import (
    ContainerRuntimeError,
    DependencyError,
    ImageAcquisitionError,
    TranslationError,
)
from stackr.MODELS.compose_project import ComposeProject
from stackr.MODELS.service_definition import (
    BuildSpec,
    DependencyCondition,
    NetworkAttachment,
    PortBinding,
    ServiceDefinition,
    ServiceDependency,
    VolumeMount,
    VolumeType,
)
from stackr.PARSERS.compose_parser import ComposeParser
from stackr.RUNNERS.condition_waiter import DependencyWaiter
from stackr.RUNNERS.launch_sequencer import LaunchSequencer, launch_project

TICK = 0.01


def depends(name, condition=DependencyCondition.STARTED, required=True):
    return {name: ServiceDependency(condition=condition, required=required)}


def sequencer(runtime):
    return LaunchSequencer(runtime, DependencyWaiter(runtime, poll_interval=TICK))


class TestLaunchSequencer:
    """Tests for LaunchSequencer."""

    def test_launches_in_project_order(self, runtime):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="a", image="alpine"),
            ServiceDefinition(name="b", image="alpine", depends_on=depends("a")),
        ])
        result = sequencer(runtime).launch(project)
        assert [c for c in runtime.calls if c[0] != "inspect"] == [
            ("pull", "alpine"), ("create", "a"), ("start", "a"),
            ("pull", "alpine"), ("create", "b"), ("start", "b"),
        ]
        assert set(result.container_ids) == {"a", "b"}

    def test_fail_fast_on_dependency_timeout(self, runtime, states):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="A", image="alpine"),
            ServiceDefinition(name="B", image="alpine", depends_on=depends("A", DependencyCondition.HEALTHY)),
            ServiceDefinition(name="C", image="alpine"),
        ])
        runtime.script("A", states.starting())
        with pytest.raises(DependencyError) as excinfo:
            sequencer(runtime).launch(project, timeout=0.1)

        assert excinfo.value.service == "B"
        assert excinfo.value.dependency == "A"
        assert "A" in str(excinfo.value) and "B" in str(excinfo.value)
        assert ("create", "B") not in runtime.calls
        assert ("create", "C") not in runtime.calls
        # Already started services stay up
        assert runtime.containers["A"]["started"]

    def test_fail_fast_on_dependency_exit(self, runtime, states):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="migrate", image="alpine"),
            ServiceDefinition(name="app", image="alpine",
                              depends_on=depends("migrate", DependencyCondition.COMPLETED_SUCCESSFULLY)),
        ])
        runtime.script("migrate", states.exited(1))
        with pytest.raises(DependencyError, match="exited with code 1"):
            sequencer(runtime).launch(project, timeout=5)
        assert ("create", "app") not in runtime.calls

    def test_optional_dependency_timeout_aborts(self, runtime, states):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="cache", image="redis"),
            ServiceDefinition(name="app", image="alpine",
                              depends_on=depends("cache", DependencyCondition.HEALTHY, required=False)),
        ])
        runtime.script("cache", states.starting())
        with pytest.raises(DependencyError, match="waiting on dependency cache for service app"):
            sequencer(runtime).launch(project, timeout=0.05)
        assert ("create", "app") not in runtime.calls

    def test_optional_dependency_failure_aborts(self, runtime, states):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="migrate", image="migrate"),
            ServiceDefinition(name="app", image="app",
                              depends_on=depends("migrate", DependencyCondition.COMPLETED_SUCCESSFULLY,
                                                 required=False)),
        ])
        runtime.script("migrate", states.exited(3))
        with pytest.raises(DependencyError, match="exited with code 3"):
            sequencer(runtime).launch(project, timeout=5)
        assert ("start", "app") not in runtime.calls

    def test_build_never_pulls(self, runtime):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="app", build=BuildSpec(context="/src")),
        ])
        sequencer(runtime).launch(project)
        assert runtime.ops("build") == [("build", "app")]
        assert runtime.ops("pull") == []

    def test_pull_never_builds(self, runtime):
        project = ComposeProject(name="demo", services=[ServiceDefinition(name="web", image="nginx")])
        sequencer(runtime).launch(project)
        assert runtime.ops("pull") == [("pull", "nginx")]
        assert runtime.ops("build") == []

    def test_built_image_is_back_filled(self, runtime):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="app", build=BuildSpec(context="/src")),
        ])
        result = sequencer(runtime).launch(project)
        assert result.project.get_service("app").image == "app"
        assert runtime.containers["app"]["resources"].container.image == "app"
        # The caller's snapshot is not modified
        assert project.get_service("app").image == ""

    def test_explicit_image_name_is_kept_for_builds(self, runtime):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="app", image="custom_build_image", build=BuildSpec(context="/src")),
        ])
        result = sequencer(runtime).launch(project)
        assert runtime.ops("build") == [("build", "custom_build_image")]
        assert result.project.get_service("app").image == "custom_build_image"

    def test_build_failure_does_not_fall_back_to_pull(self, runtime):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="app", image="app:dev", build=BuildSpec(context="/src")),
        ])
        runtime.fail("build", "app:dev")
        with pytest.raises(ImageAcquisitionError) as excinfo:
            sequencer(runtime).launch(project)
        assert excinfo.value.service == "app"
        assert excinfo.value.action == "build"
        assert runtime.ops("pull") == []
        assert runtime.ops("create") == []

    def test_pull_failure(self, runtime):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="web", image="nginx"),
            ServiceDefinition(name="api", image="api"),
        ])
        runtime.fail("pull", "nginx", "manifest unknown")
        with pytest.raises(ImageAcquisitionError, match="manifest unknown"):
            sequencer(runtime).launch(project)
        assert runtime.ops("create") == []

    def test_create_failure_names_service(self, runtime):
        project = ComposeProject(name="demo", services=[ServiceDefinition(name="web", image="nginx")])
        runtime.fail("create", "web", "Conflict. The container name is already in use")
        with pytest.raises(ContainerRuntimeError) as excinfo:
            sequencer(runtime).launch(project)
        assert excinfo.value.service == "web"
        assert excinfo.value.container_id is None
        assert "already in use" in str(excinfo.value)

    def test_start_failure_names_container(self, runtime):
        project = ComposeProject(name="demo", services=[ServiceDefinition(name="web", image="nginx")])
        runtime.fail("start", "web", "port is already allocated")
        with pytest.raises(ContainerRuntimeError) as excinfo:
            sequencer(runtime).launch(project)
        assert excinfo.value.service == "web"
        assert excinfo.value.container_id == runtime.containers["web"]["id"]
        assert excinfo.value.container_id[:12] in str(excinfo.value)

    def test_translation_failure_aborts(self, runtime):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="web", image="nginx", ports=[
                PortBinding(target="80", published="8080"),
                PortBinding(target="81", published="8080"),
            ]),
            ServiceDefinition(name="api", image="api"),
        ])
        with pytest.raises(TranslationError):
            sequencer(runtime).launch(project)
        assert runtime.ops("create") == []

    def test_networks_and_volumes_are_ensured(self, runtime):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(
                name="db", image="postgres",
                networks=[NetworkAttachment(name="backend")],
                volumes=[
                    VolumeMount(type=VolumeType.VOLUME, source="pgdata", target="/var/lib/postgresql/data"),
                    VolumeMount(type=VolumeType.BIND, source="/srv/init", target="/docker-entrypoint-initdb.d"),
                ],
            ),
        ])
        sequencer(runtime).launch(project)
        assert runtime.ops("ensure_network") == [("ensure_network", "backend")]
        assert runtime.ops("ensure_volume") == [("ensure_volume", "pgdata")]

    def test_default_and_external_networks_are_not_created(self, runtime):
        content = """
services:
  db:
    image: postgres
    networks:
      default:
        aliases: [database]
  web:
    image: nginx
    networks: [shared, front]
networks:
  shared:
    external: true
  front:
    name: shared_front
"""
        project = ComposeParser(context={}).parse_from_string(content)
        sequencer(runtime).launch(project)
        assert runtime.ops("ensure_network") == [("ensure_network", "shared_front")]
        assert runtime.containers["db"]["resources"].host.network_mode is None
        assert runtime.containers["web"]["resources"].host.network_mode == "shared"

    def test_launch_project_shortcut(self, runtime):
        project = ComposeProject(name="demo", services=[ServiceDefinition(name="web", image="nginx")])
        result = launch_project(project, runtime)
        assert list(result.container_ids) == ["web"]


class TestLaunchScenarios:
    """End-to-end ordering scenarios."""

    def test_api_starts_after_db_is_healthy(self, runtime, states):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="db", image="postgres"),
            ServiceDefinition(name="api", image="api", depends_on=depends("db", DependencyCondition.HEALTHY)),
        ])
        runtime.script("db", states.starting(), states.starting(), states.healthy())
        sequencer(runtime).launch(project, timeout=5)

        healthy_at = runtime.first_event("healthy", "db")
        api_started = runtime.first_event("start", "api")
        assert healthy_at is not None
        assert api_started >= healthy_at

    def test_app_starts_after_migrate_exits_zero(self, runtime, states):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name="migrate", image="migrate"),
            ServiceDefinition(name="app", image="app",
                              depends_on=depends("migrate", DependencyCondition.COMPLETED_SUCCESSFULLY)),
        ])
        runtime.script("migrate", states.running(), states.exited(0))
        sequencer(runtime).launch(project, timeout=5)

        exited_at = runtime.first_event("exited", "migrate")
        app_started = runtime.first_event("start", "app")
        assert exited_at is not None
        assert app_started >= exited_at
        assert runtime.first_event("start", "migrate") < exited_at

    def test_independent_services_launch_sequentially(self, runtime):
        project = ComposeProject(name="demo", services=[
            ServiceDefinition(name=f"svc{i}", image="alpine") for i in range(5)
        ])
        sequencer(runtime).launch(project)
        starts = [c[1] for c in runtime.ops("start")]
        assert starts == [f"svc{i}" for i in range(5)]
