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
Waiting on depends_on conditions of a service before its dependent starts.
"""
import threading
import time
from enum import Enum
from typing import Optional, Union

from tenacity import (
    RetryError,
    Retrying,
    retry_if_result,
    stop_any,
    stop_never,
    stop_when_event_set,
    wait_fixed,
)

from ..errors import DependencyExitedError, RuntimeClientError, WaitTimeoutError
from ..MODELS.container_state import HealthStatus
from ..MODELS.service_definition import DependencyCondition
from ..RUNTIME.base import RuntimeClient

# Seconds between two inspections of the dependency
POLL_INTERVAL = 0.2


class WaitState(str, Enum):
    """State of a single (service, condition) wait."""

    WAITING = "waiting"
    SATISFIED = "satisfied"
    FAILED = "failed"


class DependencyWaiter:
    """
    Polls the runtime until a service satisfies a dependency condition.

    ``service_started`` never blocks. ``service_healthy`` waits for the
    reported health status to reach the target value and treats inspection
    errors as transient. ``service_completed_successfully`` waits for the
    container to stop and fails as soon as it stops with a non-zero code.
    """

    def __init__(
        self,
        runtime: RuntimeClient,
        poll_interval: float = POLL_INTERVAL,
        target_health: str = HealthStatus.HEALTHY.value,
    ):
        """
        Initializes the waiter.

        :param runtime: Runtime used to inspect dependencies.
        :param poll_interval: Seconds between two inspections.
        :param target_health: Health status that satisfies service_healthy.
        """
        self.runtime = runtime
        self.poll_interval = poll_interval
        self.target_health = target_health

    def wait(
        self,
        name: str,
        condition: Union[DependencyCondition, str],
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """
        Blocks until the condition holds for the named service.

        :param name: Runtime name of the dependency.
        :param condition: The condition to wait for.
        :param deadline: time.monotonic() value after which the wait is abandoned.
        :param cancel_event: Abandons the wait when set.
        :raises WaitTimeoutError: If the deadline passes or the wait is cancelled.
        :raises DependencyExitedError: If a completion wait sees a non-zero exit.
        :raises RuntimeClientError: If inspection fails during a completion wait.
        """
        condition = DependencyCondition(condition)
        if condition == DependencyCondition.STARTED:
            return

        stops = []
        if cancel_event is not None:
            stops.append(stop_when_event_set(cancel_event))
        if deadline is not None:
            stops.append(lambda retry_state: time.monotonic() >= deadline)

        retrying = Retrying(
            retry=retry_if_result(lambda state: state == WaitState.WAITING),
            wait=wait_fixed(self.poll_interval),
            stop=stop_any(*stops) if stops else stop_never,
        )
        try:
            retrying(self.check, name, condition)
        except RetryError as e:
            reason = "cancelled" if cancel_event is not None and cancel_event.is_set() else "deadline exceeded"
            raise WaitTimeoutError(name, condition.value, reason) from e

    def check(self, name: str, condition: DependencyCondition) -> WaitState:
        """
        Inspects the service once and reports where the wait stands.

        :raises DependencyExitedError: When the wait has FAILED.
        """
        if condition == DependencyCondition.STARTED:
            return WaitState.SATISFIED

        if condition == DependencyCondition.HEALTHY:
            try:
                state = self.runtime.inspect(name)
            except RuntimeClientError:
                # Right after start the container may not be inspectable yet
                return WaitState.WAITING
            if state.health is not None and state.health.status == self.target_health:
                return WaitState.SATISFIED
            return WaitState.WAITING

        state = self.runtime.inspect(name)
        if state.running:
            return WaitState.WAITING
        if state.exit_code == 0:
            return WaitState.SATISFIED
        raise DependencyExitedError(name, state.exit_code)
