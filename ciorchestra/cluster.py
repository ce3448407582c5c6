"""
ClusterClient - declarative resource API that concrete steps talk to.

Semantics follow a reconciling control plane:
- get() raises NotFoundError when the resource does not exist
- create() raises AlreadyExistsError when the name is taken
- list() returns every resource of a kind in a namespace

Resources are plain dicts in the OpenShift JSON shape; name and namespace
live under `metadata`.

Local backends reconcile image resources the way the image API does:
- creating an ImageStream fills in its status (repository and one status
  tag per spec tag)
- creating an ImageStreamTag `stream:tag` records the tag on the owning
  ImageStream (created on demand) and exposes the image digest

Storage backends:
- In-memory (for testing)
- File-based (for the CLI and local development)
"""

import copy
import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote, unquote

from ciorchestra.errors import AlreadyExistsError, NotFoundError

IMAGE_STREAM = "ImageStream"
IMAGE_STREAM_TAG = "ImageStreamTag"
CONFIG_MAP = "ConfigMap"
ROUTE = "Route"

KINDS = (IMAGE_STREAM, IMAGE_STREAM_TAG, CONFIG_MAP, ROUTE)

DEFAULT_REGISTRY = "registry.ci.local"

Resource = dict[str, Any]


def _name_of(obj: Resource) -> str:
    name = obj.get("metadata", {}).get("name")
    if not name:
        raise ValueError("resource metadata.name is required")
    return name


def _status_item(ref: Optional[dict[str, Any]]) -> Optional[dict[str, str]]:
    """Status tag item for an ObjectReference, or None if it names no image."""
    if not ref or not ref.get("name"):
        return None
    name = ref["name"]
    if ref.get("kind") == "ImageStreamImage":
        if "@" not in name:
            return None
        return {"image": name.split("@", 1)[1], "dockerImageReference": ""}
    if ref.get("kind") == "DockerImage":
        image = name.split("@", 1)[1] if "@" in name else ""
        return {"image": image, "dockerImageReference": name}
    return None


class ClusterClient(ABC):
    """
    Abstract base class for cluster resource access.

    Implementations must be safe to call from several executor worker
    threads at once.
    """

    @abstractmethod
    def get(self, kind: str, namespace: str, name: str) -> Resource:
        """
        Fetch a resource.

        Raises:
            NotFoundError: If the resource does not exist
        """
        pass

    @abstractmethod
    def list(self, kind: str, namespace: str) -> list[Resource]:
        """List resources of a kind in a namespace, sorted by name."""
        pass

    @abstractmethod
    def create(self, kind: str, namespace: str, obj: Resource) -> Resource:
        """
        Create a resource and return the stored copy.

        Raises:
            AlreadyExistsError: If a resource with the same name exists
        """
        pass


class LocalClusterClient(ClusterClient):
    """
    ClusterClient over a local store, with image API reconciliation.

    Subclasses provide the storage primitives (_read, _write, _names).
    """

    def __init__(self, registry: str = DEFAULT_REGISTRY):
        self._registry = registry
        self._lock = threading.RLock()

    @abstractmethod
    def _read(self, kind: str, namespace: str, name: str) -> Optional[Resource]:
        pass

    @abstractmethod
    def _write(self, kind: str, namespace: str, obj: Resource) -> None:
        pass

    @abstractmethod
    def _names(self, kind: str, namespace: str) -> list[str]:
        pass

    def add(self, kind: str, namespace: str, obj: Resource) -> Resource:
        """Seed a resource as-is, replacing any existing one (no reconciliation)."""
        obj = copy.deepcopy(obj)
        _name_of(obj)
        obj["metadata"]["namespace"] = namespace
        with self._lock:
            self._write(kind, namespace, obj)
        return copy.deepcopy(obj)

    def get(self, kind: str, namespace: str, name: str) -> Resource:
        with self._lock:
            obj = self._read(kind, namespace, name)
        if obj is None:
            raise NotFoundError(kind, namespace, name)
        return copy.deepcopy(obj)

    def list(self, kind: str, namespace: str) -> list[Resource]:
        with self._lock:
            found = [self._read(kind, namespace, name) for name in self._names(kind, namespace)]
        return sorted(
            (copy.deepcopy(obj) for obj in found if obj is not None),
            key=lambda o: o["metadata"]["name"],
        )

    def create(self, kind: str, namespace: str, obj: Resource) -> Resource:
        obj = copy.deepcopy(obj)
        name = _name_of(obj)
        obj["metadata"]["namespace"] = namespace
        with self._lock:
            if self._read(kind, namespace, name) is not None:
                raise AlreadyExistsError(kind, namespace, name)
            if kind == IMAGE_STREAM:
                self._reconcile_image_stream(namespace, obj)
            elif kind == IMAGE_STREAM_TAG:
                self._reconcile_image_stream_tag(namespace, obj)
            self._write(kind, namespace, obj)
        return copy.deepcopy(obj)

    def _repository(self, namespace: str, name: str) -> str:
        return f"{self._registry}/{namespace}/{name}"

    def _reconcile_image_stream(self, namespace: str, stream: Resource) -> None:
        repository = self._repository(namespace, stream["metadata"]["name"])
        status = stream.setdefault("status", {})
        status.setdefault("dockerImageRepository", repository)
        status.setdefault("publicDockerImageRepository", repository)
        status_tags = status.setdefault("tags", [])
        known = {t.get("tag") for t in status_tags}
        for tag in stream.get("spec", {}).get("tags", []):
            item = _status_item(tag.get("from"))
            if item is not None and tag.get("name") not in known:
                status_tags.append({"tag": tag["name"], "items": [item]})

    def _reconcile_image_stream_tag(self, namespace: str, ist: Resource) -> None:
        stream_name, _, tag_name = ist["metadata"]["name"].partition(":")
        if not stream_name or not tag_name:
            raise ValueError(f"ImageStreamTag name must be <stream>:<tag>, got {ist['metadata']['name']}")
        reference = ist.get("tag") or {}
        item = _status_item(reference.get("from"))
        if item is not None:
            ist["image"] = {"metadata": {"name": item["image"]}}

        stream = self._read(IMAGE_STREAM, namespace, stream_name)
        if stream is None:
            stream = {"metadata": {"name": stream_name, "namespace": namespace}, "spec": {"tags": []}}
            self._reconcile_image_stream(namespace, stream)
        spec_tags = stream.setdefault("spec", {}).setdefault("tags", [])
        spec_tags[:] = [t for t in spec_tags if t.get("name") != tag_name]
        spec_tags.append({"name": tag_name, "from": reference.get("from")})
        status_tags = stream.setdefault("status", {}).setdefault("tags", [])
        status_tags[:] = [t for t in status_tags if t.get("tag") != tag_name]
        if item is not None:
            status_tags.append({"tag": tag_name, "items": [item]})
        self._write(IMAGE_STREAM, namespace, stream)


class InMemoryClusterClient(LocalClusterClient):
    """
    In-memory implementation of ClusterClient for testing.

    All data is lost when the instance is garbage collected.
    """

    def __init__(self, registry: str = DEFAULT_REGISTRY):
        super().__init__(registry)
        self._objects: dict[tuple[str, str, str], Resource] = {}

    def _read(self, kind: str, namespace: str, name: str) -> Optional[Resource]:
        return self._objects.get((kind, namespace, name))

    def _write(self, kind: str, namespace: str, obj: Resource) -> None:
        self._objects[(kind, namespace, obj["metadata"]["name"])] = copy.deepcopy(obj)

    def _names(self, kind: str, namespace: str) -> list[str]:
        return [name for (k, ns, name) in self._objects if k == kind and ns == namespace]

    def clear(self) -> None:
        """Clear all stored data (for testing)."""
        with self._lock:
            self._objects.clear()


class FileClusterClient(LocalClusterClient):
    """
    File-based implementation of ClusterClient.

    Stores resources as JSON files in a directory tree:
        state_dir/
            {kind}/
                {namespace}/
                    {quoted name}.json
    """

    def __init__(self, state_dir: Path | str, registry: str = DEFAULT_REGISTRY):
        super().__init__(registry)
        self._state_dir = Path(state_dir).expanduser()
        self._state_dir.mkdir(parents=True, exist_ok=True)

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    def _path(self, kind: str, namespace: str, name: str) -> Path:
        return self._state_dir / kind / namespace / f"{quote(name, safe='')}.json"

    def _read(self, kind: str, namespace: str, name: str) -> Optional[Resource]:
        path = self._path(kind, namespace, name)
        if not path.exists():
            return None
        with open(path) as f:
            return json.load(f)

    def _write(self, kind: str, namespace: str, obj: Resource) -> None:
        path = self._path(kind, namespace, obj["metadata"]["name"])
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(obj, f, indent=2)

    def _names(self, kind: str, namespace: str) -> list[str]:
        directory = self._state_dir / kind / namespace
        if not directory.exists():
            return []
        return [unquote(path.stem) for path in directory.glob("*.json")]
