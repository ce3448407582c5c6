"""
Image reference and step configuration schemas.

ImageStreamTagReference identifies an image outside the job namespace.
Pipeline image tags are plain strings naming a tag on the job's
`pipeline` image stream.
"""

from dataclasses import dataclass, field
from typing import Any

# Tag on the pipeline image stream, e.g. "root" or "src"
PipelineImageStreamTagReference = str


@dataclass(frozen=True)
class ImageStreamTagReference:
    """
    An external image stream tag.

    Attributes:
        namespace: Namespace holding the image stream
        name: Image stream name
        tag: Tag on the image stream
    """
    namespace: str
    name: str
    tag: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}:{self.tag}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageStreamTagReference":
        """Deserialize from dictionary."""
        missing = [key for key in ("namespace", "name", "tag") if not data.get(key)]
        if missing:
            raise ValueError(f"image reference is missing: {', '.join(missing)}")
        return cls(
            namespace=str(data["namespace"]),
            name=str(data["name"]),
            tag=str(data["tag"]),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {"namespace": self.namespace, "name": self.name, "tag": self.tag}


@dataclass(frozen=True)
class InputImageTagStepConfiguration:
    """Tag an external base image into the pipeline image stream as `to`."""
    base_image: ImageStreamTagReference
    to: PipelineImageStreamTagReference


@dataclass(frozen=True)
class ReleaseTagConfiguration:
    """
    Where the stable release images come from.

    Exactly one mode applies:
    - name set: copy the single image stream `namespace/name` (one tag per component)
    - name empty: cross-tag `tag` from every image stream in `namespace`

    Attributes:
        namespace: Namespace holding the release image streams
        name: Image stream holding every component as a tag (name mode)
        tag: Tag to take from each per-component image stream (tag mode)
        name_prefix: Prefix applied to image stream names in IMAGE_FORMAT
        tag_overrides: Per image stream tag to use instead of `tag`
    """
    namespace: str
    name: str = ""
    tag: str = ""
    name_prefix: str = ""
    tag_overrides: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.namespace:
            raise ValueError("release configuration requires a namespace")
        if not self.name and not self.tag:
            raise ValueError("release configuration requires a name or a tag")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReleaseTagConfiguration":
        """Deserialize from dictionary."""
        return cls(
            namespace=str(data.get("namespace", "")),
            name=str(data.get("name") or ""),
            tag=str(data.get("tag") or ""),
            name_prefix=str(data.get("name_prefix") or ""),
            tag_overrides={str(k): str(v) for k, v in (data.get("tag_overrides") or {}).items()},
        )
