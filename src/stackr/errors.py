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
Exceptions raised while loading and launching a compose stack.

Every launch failure carries the name of the service it happened on so the
caller can find (and clean up) whatever was already created.
"""
from typing import Optional


def _with_reason(message: str, reason: Optional[str]) -> str:
    return f"{message}: {reason}" if reason else message


class StackrError(Exception):
    """Base class for all stackr errors."""


class ProjectLoadError(StackrError):
    """The manifest is missing, unparseable or describes an invalid project."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class TranslationError(StackrError):
    """A service cannot be mapped onto a valid runtime specification."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"translate service {service} config: {message}")


class RuntimeClientError(StackrError):
    """A call against the container runtime failed."""


class ImageAcquisitionError(StackrError):
    """Pulling or building the image for a service failed."""

    def __init__(self, service: str, image: str, action: str, reason: Optional[str] = None):
        self.service = service
        self.image = image
        self.action = action
        super().__init__(
            _with_reason(f"{action} image {image} for service {service}", reason)
        )


class WaitTimeoutError(StackrError):
    """A dependency condition was not met before the deadline."""

    def __init__(self, service: str, condition: str, reason: str = "deadline exceeded"):
        self.service = service
        self.condition = condition
        super().__init__(f"timeout waiting for {service} ({condition}): {reason}")


class DependencyExitedError(StackrError):
    """A dependency that had to complete successfully exited non-zero."""

    def __init__(self, service: str, exit_code: int):
        self.service = service
        self.exit_code = exit_code
        super().__init__(f"{service} exited with code {exit_code}")


class DependencyError(StackrError):
    """Waiting on a dependency of a service failed."""

    def __init__(self, service: str, dependency: str, condition: str,
                 reason: Optional[str] = None):
        self.service = service
        self.dependency = dependency
        self.condition = condition
        super().__init__(
            _with_reason(f"waiting on dependency {dependency} for service {service}", reason)
        )


class ContainerRuntimeError(StackrError):
    """Creating or starting the container of a service failed."""

    def __init__(self, service: str, action: str, container_id: Optional[str] = None,
                 reason: Optional[str] = None):
        self.service = service
        self.action = action
        self.container_id = container_id
        target = service if not container_id else f"{service} (ID: {container_id[:12]})"
        super().__init__(_with_reason(f"{action} container {target}", reason))
