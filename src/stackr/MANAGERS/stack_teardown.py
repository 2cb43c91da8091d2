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
Removal of the containers (and optionally images) of a launched project.
"""
from typing import List
from ..errors import RuntimeClientError, StackrError
from ..MODELS.compose_project import ComposeProject
from ..RUNTIME.base import RuntimeClient

REMOVE_IMAGES_CHOICES = ("none", "local", "all")


def teardown(project: ComposeProject, runtime: RuntimeClient, remove_images: str = "none") -> None:
    """
    Removes every container of the project, in reverse launch order.

    Containers are force-removed together with their anonymous volumes, and
    any stray container carrying the same name is swept as well. Failures do
    not stop the teardown of the remaining services; they are reported
    together at the end.

    :param project: The loaded project.
    :param runtime: Runtime holding the containers.
    :param remove_images: "local" removes built images, "all" pulled ones too.
    :raises StackrError: If anything could not be removed.
    """
    if remove_images not in REMOVE_IMAGES_CHOICES:
        raise ValueError(f"remove_images must be one of {', '.join(REMOVE_IMAGES_CHOICES)}")

    failures: List[str] = []
    for service in reversed(project.services):
        print(f"Removing container: {service.name}...")
        try:
            runtime.remove_container(service.name, force=True, remove_volumes=True)
            for container_id in runtime.list_containers(f"^/{service.name}$"):
                runtime.remove_container(container_id, force=True, remove_volumes=True)
        except RuntimeClientError as e:
            failures.append(str(e))
            continue

        image = service.image or (service.name if service.build else "")
        built = service.build is not None
        if image and (remove_images == "all" or (remove_images == "local" and built)):
            print(f"Removing image: {image}...")
            try:
                runtime.remove_image(image, force=True, prune_children=True)
            except RuntimeClientError as e:
                failures.append(str(e))

    if failures:
        raise StackrError("teardown incomplete: " + "; ".join(failures))
