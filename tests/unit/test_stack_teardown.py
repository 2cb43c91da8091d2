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
Unit tests for project teardown.
"""
import pytest
from stackr.errors import StackrError
from stackr.MANAGERS.stack_teardown import teardown
from stackr.MODELS.compose_project import ComposeProject
from stackr.MODELS.service_definition import BuildSpec, ServiceDefinition

PROJECT = ComposeProject(name="demo", services=[
    ServiceDefinition(name="db", image="postgres"),
    ServiceDefinition(name="app", build=BuildSpec(context="/src")),
])


def test_removes_in_reverse_order(runtime):
    teardown(PROJECT, runtime)
    assert runtime.ops("remove_container") == [("remove_container", "app"), ("remove_container", "db")]
    assert runtime.ops("list") == [("list", "^/app$"), ("list", "^/db$")]
    assert runtime.ops("remove_image") == []


def test_remove_local_images(runtime):
    teardown(PROJECT, runtime, remove_images="local")
    assert runtime.ops("remove_image") == [("remove_image", "app")]


def test_remove_all_images(runtime):
    teardown(PROJECT, runtime, remove_images="all")
    assert runtime.ops("remove_image") == [("remove_image", "app"), ("remove_image", "postgres")]


def test_failures_are_collected(runtime):
    runtime.fail("remove_container", "app", "device busy")
    with pytest.raises(StackrError, match="device busy"):
        teardown(PROJECT, runtime)
    assert ("remove_container", "db") in runtime.calls


def test_invalid_choice(runtime):
    with pytest.raises(ValueError):
        teardown(PROJECT, runtime, remove_images="some")
