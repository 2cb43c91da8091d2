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

import pytest
from stackr.errors import ProjectLoadError
from stackr.MODELS.compose_project import ComposeProject
from stackr.MODELS.service_definition import ServiceDefinition, ServiceDependency
from stackr.RUNNERS.dependency_resolver import DependencyResolver


def make_project(**deps):
    return ComposeProject(name="p", services=[
        ServiceDefinition(name=name, image="busybox",
                          depends_on={d: ServiceDependency() for d in needs})
        for name, needs in deps.items()
    ])


def test_simple_resolution():
    project = make_project(web=["db"], db=[])
    assert DependencyResolver().resolve_order(project) == ["db", "web"]


def test_declaration_order_kept_for_independent_services():
    project = make_project(c=[], a=[], b=[])
    assert DependencyResolver().resolve_order(project) == ["c", "a", "b"]


def test_diamond():
    project = make_project(app=["api", "worker"], api=["db"], worker=["db"], db=[])
    order = DependencyResolver().resolve_order(project)
    assert order[0] == "db"
    assert order[-1] == "app"


def test_cycle_detection():
    project = make_project(a=["b"], b=["c"], c=["a"])
    with pytest.raises(ProjectLoadError, match="dependency cycle detected: a -> b -> c -> a"):
        DependencyResolver().resolve_order(project)


def test_sort_returns_new_project():
    project = make_project(web=["db"], db=[])
    ordered = DependencyResolver().sort(project)
    assert ordered.service_names() == ["db", "web"]
    assert project.service_names() == ["web", "db"]
