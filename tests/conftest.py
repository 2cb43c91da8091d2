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
Shared fixtures: an in-memory runtime standing in for the Docker daemon.
"""
import time
from types import SimpleNamespace
from collections import defaultdict
from typing import Dict, List, Optional

import pytest

from stackr.errors import RuntimeClientError
from stackr.MODELS.container_state import ContainerState, HealthState
from stackr.MODELS.runtime_spec import BuildRequest, ResourceTriplet
from stackr.RUNTIME.base import RuntimeClient


def healthy():
    return ContainerState(running=True, status="running", health=HealthState(status="healthy"))


def starting():
    return ContainerState(running=True, status="running", health=HealthState(status="starting"))


def running():
    return ContainerState(running=True, status="running")


def exited(code):
    return ContainerState(running=False, status="exited", exit_code=code)


class FakeRuntime(RuntimeClient):
    """
    Records every call and answers inspections from scripted states.

    A scripted sequence is consumed one state per inspect call; the last
    entry repeats forever. Entries may also be exceptions, which are raised.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.events: List[tuple] = []
        self.containers: Dict[str, dict] = {}
        self.failures: Dict[tuple, Exception] = {}
        self.scripts: Dict[str, list] = {}
        self.inspect_counts = defaultdict(int)

    def script(self, name: str, *states) -> None:
        self.scripts[name] = list(states)

    def fail(self, op: str, target: str, message: str = "boom") -> None:
        self.failures[(op, target)] = RuntimeClientError(message)

    def _maybe_fail(self, op: str, target: str) -> None:
        if (op, target) in self.failures:
            raise self.failures[(op, target)]

    def ops(self, op: Optional[str] = None) -> List[tuple]:
        return [c for c in self.calls if op is None or c[0] == op]

    def pull_image(self, ref):
        self.calls.append(("pull", ref))
        self._maybe_fail("pull", ref)

    def build_image(self, request: BuildRequest):
        self.calls.append(("build", request.tag))
        self._maybe_fail("build", request.tag)
        return request.tag

    def create_container(self, name, resources: ResourceTriplet):
        self.calls.append(("create", name))
        self._maybe_fail("create", name)
        container_id = f"{len(self.containers) + 1:064x}"
        self.containers[name] = {"id": container_id, "resources": resources, "started": False}
        return container_id

    def start_container(self, container_id):
        name = next(n for n, c in self.containers.items() if c["id"] == container_id)
        self.calls.append(("start", name))
        self._maybe_fail("start", name)
        self.containers[name]["started"] = True
        self.events.append(("start", name, time.monotonic()))

    def inspect(self, name):
        self.calls.append(("inspect", name))
        self.inspect_counts[name] += 1
        script = self.scripts.get(name)
        if script:
            state = script.pop(0) if len(script) > 1 else script[0]
            if isinstance(state, Exception):
                raise state
            if state.health is not None and state.health.status == "healthy":
                self.events.append(("healthy", name, time.monotonic()))
            if not state.running:
                self.events.append(("exited", name, time.monotonic()))
            return state
        container = self.containers.get(name)
        if container is None:
            raise RuntimeClientError(f"No such container: {name}")
        return running() if container["started"] else ContainerState(status="created")

    def remove_container(self, name, force=False, remove_volumes=False):
        self.calls.append(("remove_container", name))
        self._maybe_fail("remove_container", name)
        self.containers.pop(name, None)

    def remove_image(self, ref, force=False, prune_children=True):
        self.calls.append(("remove_image", ref))

    def list_containers(self, name_filter=None):
        self.calls.append(("list", name_filter))
        return []

    def ensure_network(self, name):
        self.calls.append(("ensure_network", name))

    def ensure_volume(self, name):
        self.calls.append(("ensure_volume", name))

    def close(self):
        self.calls.append(("close",))

    def first_event(self, kind: str, name: str) -> Optional[float]:
        for event in self.events:
            if event[0] == kind and event[1] == name:
                return event[2]
        return None


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def states():
    """Factories for the container states a test scripts."""
    return SimpleNamespace(healthy=healthy, starting=starting, running=running, exited=exited)
