"""
ReleaseImagesTagStep - tag a full release suite of images into the job.

Images come from the configured release namespace, either:
- name mode: one image stream holding every component as a tag, copied
  into the job's `stable` image stream
- tag mode: one image stream per component, each cross-tagged at the
  configured tag (or its per-stream override)

Builds are expected to overwrite some of these tags later. The pull spec
of every tagged component is published as a parameter named after the
component (upper case, dashes to underscores), and IMAGE_FORMAT is
provided for consumers of the images-ready link.
"""

import logging
from typing import Any, Optional

from ciorchestra.cluster import CONFIG_MAP, IMAGE_STREAM, IMAGE_STREAM_TAG, ROUTE, ClusterClient
from ciorchestra.errors import AlreadyExistsError, ClusterError, NotFoundError, StepError
from ciorchestra.links import StepLink, images_ready_link, release_images_link
from ciorchestra.parameters import DeferredParameters
from ciorchestra.schemas import JobSpec, ReleaseTagConfiguration
from ciorchestra.step import InputDefinition, ParameterMap, Step
from ciorchestra.steps.common import (
    CONFIG_MAP_NAME,
    PIPELINE_IMAGE_STREAM,
    RPM_REPO_NAME,
    STABLE_IMAGE_STREAM,
    print_resource,
)

logger = logging.getLogger(__name__)

COMPONENT_FORMAT_REPLACEMENT = "${component}"


def find_status_tag(stream: dict[str, Any], tag: str) -> Optional[dict[str, str]]:
    """ObjectReference to the image currently behind `tag`, or None."""
    for status_tag in stream.get("status", {}).get("tags") or []:
        if status_tag.get("tag") != tag:
            continue
        items = status_tag.get("items") or []
        if not items:
            return None
        if not items[0].get("image"):
            return {"kind": "DockerImage", "name": items[0].get("dockerImageReference", "")}
        return {
            "kind": "ImageStreamImage",
            "namespace": stream["metadata"].get("namespace", ""),
            "name": f"{stream['metadata']['name']}@{items[0]['image']}",
        }
    return None


def resolve_pull_spec(stream: dict[str, Any], tag: str) -> Optional[str]:
    """
    Pull spec for `tag` on the stream, preferring a digest reference.

    The public repository is preferred over the internal one.
    """
    status = stream.get("status", {})
    repositories = [
        repo for repo in (status.get("publicDockerImageRepository"), status.get("dockerImageRepository"))
        if repo
    ]
    for status_tag in status.get("tags") or []:
        if status_tag.get("tag") != tag:
            continue
        items = status_tag.get("items") or []
        if items and items[0].get("image") and repositories:
            return f"{repositories[0]}@{items[0]['image']}"
        break
    if repositories:
        return f"{repositories[0]}:{tag}"
    return None


def component_to_param_name(component: str) -> str:
    return component.replace("-", "_").upper()


def source_name(config: ReleaseTagConfiguration) -> str:
    if config.name:
        return f"{config.namespace}/{config.name}:{COMPONENT_FORMAT_REPLACEMENT}"
    return f"{config.namespace}/{COMPONENT_FORMAT_REPLACEMENT}:{config.tag}"


class ReleaseImagesTagStep(Step):
    """Tag the release images into the job namespace and record the release ConfigMap."""

    def __init__(
        self,
        config: ReleaseTagConfiguration,
        client: ClusterClient,
        params: DeferredParameters,
        job_spec: JobSpec,
    ):
        self.config = config
        self._client = client
        self._params = params
        self._job_spec = job_spec

    def describe(self) -> str:
        return "release-images"

    def inputs(self, dry: bool) -> InputDefinition:
        return []

    def run(self, dry: bool) -> None:
        logger.info(f"Tagging release images from {source_name(self.config)}")
        if self.config.name:
            self._copy_stable_stream(dry)
        else:
            self._cross_tag_streams(dry)
        self._create_release_config_map(dry)

    def _copy_stable_stream(self, dry: bool) -> None:
        try:
            source = self._client.get(IMAGE_STREAM, self.config.namespace, self.config.name)
        except ClusterError as e:
            raise StepError(self.describe(), f"could not resolve stable imagestream: {e}") from e

        tags = []
        for tag in source.get("spec", {}).get("tags") or []:
            valid = find_status_tag(source, tag["name"])
            if valid is not None:
                tags.append({"name": tag["name"], "from": valid})
        stable = {
            "kind": IMAGE_STREAM,
            "metadata": {"name": STABLE_IMAGE_STREAM},
            "spec": {"tags": tags},
        }
        if dry:
            print_resource(stable)
            return

        namespace = self._job_spec.namespace
        try:
            created = self._client.create(IMAGE_STREAM, namespace, stable)
        except AlreadyExistsError:
            created = self._client.get(IMAGE_STREAM, namespace, STABLE_IMAGE_STREAM)
        except ClusterError as e:
            raise StepError(self.describe(), f"could not copy stable imagestream: {e}") from e

        for tag in created.get("spec", {}).get("tags") or []:
            spec = resolve_pull_spec(created, tag["name"]) or resolve_pull_spec(source, tag["name"])
            if spec is not None:
                self._params.set(component_to_param_name(tag["name"]), spec)

    def _cross_tag_streams(self, dry: bool) -> None:
        try:
            streams = self._client.list(IMAGE_STREAM, self.config.namespace)
        except ClusterError as e:
            raise StepError(self.describe(), f"could not resolve stable imagestreams: {e}") from e

        for stream in streams:
            stream_name = stream["metadata"]["name"]
            logger.info(f"Considering stable image stream {stream_name}")
            target_tag = self.config.tag_overrides.get(stream_name, self.config.tag)

            for tag in stream.get("spec", {}).get("tags") or []:
                if tag.get("name") != target_tag:
                    continue
                logger.info(
                    f"Cross-tagging {stream_name}:{target_tag} from "
                    f"{self.config.namespace}/{stream_name}:{target_tag}"
                )
                image_id = ""
                for status_tag in stream.get("status", {}).get("tags") or []:
                    if status_tag.get("tag") == target_tag and status_tag.get("items"):
                        image_id = status_tag["items"][0].get("image", "")
                if not image_id:
                    raise StepError(
                        self.describe(),
                        f"no image found backing {self.config.namespace}/{stream_name}:{target_tag}",
                    )

                ist = {
                    "kind": IMAGE_STREAM_TAG,
                    "metadata": {
                        "name": f"{stream_name}:{target_tag}",
                        "namespace": self._job_spec.namespace,
                    },
                    "tag": {
                        "name": target_tag,
                        "from": {
                            "kind": "ImageStreamImage",
                            "name": f"{stream_name}@{image_id}",
                            "namespace": self.config.namespace,
                        },
                    },
                }
                if dry:
                    print_resource(ist)
                    continue

                try:
                    self._client.create(IMAGE_STREAM_TAG, self._job_spec.namespace, ist)
                except AlreadyExistsError:
                    pass
                except ClusterError as e:
                    raise StepError(self.describe(), f"could not copy stable imagestreamtag: {e}") from e

                spec = resolve_pull_spec(stream, target_tag)
                if spec is not None:
                    self._params.set(component_to_param_name(stream_name), spec)

    def _create_release_config_map(self, dry: bool) -> None:
        image_base = "dry-fake"
        rpm_repo = "dry-fake"
        namespace = self._job_spec.namespace
        if not dry:
            try:
                origin = self._client.get(IMAGE_STREAM, namespace, "origin")
            except ClusterError as e:
                raise StepError(self.describe(), f"could not resolve main release ImageStream: {e}") from e
            image_base = origin.get("status", {}).get("publicDockerImageRepository", "")
            if not image_base:
                raise StepError(
                    self.describe(),
                    f"release ImageStream {namespace}/origin is not exposed externally",
                )

            try:
                route = self._client.get(ROUTE, namespace, RPM_REPO_NAME)
            except NotFoundError:
                try:
                    route = self._client.get(ROUTE, self.config.namespace, RPM_REPO_NAME)
                except ClusterError as e:
                    raise StepError(self.describe(), f"could not resolve RPM repository: {e}") from e
            rpm_repo = route.get("spec", {}).get("host", "")

        config_map = {
            "kind": CONFIG_MAP,
            "metadata": {"name": CONFIG_MAP_NAME, "namespace": namespace},
            "data": {"image-base": image_base, "rpm-repo": rpm_repo},
        }
        if dry:
            print_resource(config_map)
            return
        try:
            self._client.create(CONFIG_MAP, namespace, config_map)
        except AlreadyExistsError:
            pass

    def done(self) -> bool:
        logger.info(f"Checking for existence of {CONFIG_MAP_NAME} ConfigMap")
        try:
            self._client.get(CONFIG_MAP, self._job_spec.namespace, CONFIG_MAP_NAME)
        except NotFoundError:
            return False
        return True

    def requires(self) -> list[StepLink]:
        return []

    def creates(self) -> list[StepLink]:
        return [release_images_link()]

    def provides(self) -> tuple[ParameterMap, Optional[StepLink]]:
        return {"IMAGE_FORMAT": self._image_format}, images_ready_link()

    def _image_format(self) -> str:
        """Pull spec template for pipeline images, with ${component} to substitute."""
        registry = "REGISTRY"
        namespace = self._job_spec.namespace
        try:
            stream = self._client.get(IMAGE_STREAM, namespace, PIPELINE_IMAGE_STREAM)
        except ClusterError:
            stream = None
        if stream is not None:
            status = stream.get("status", {})
            repository = status.get("publicDockerImageRepository") or status.get("dockerImageRepository")
            if repository:
                registry = repository.split("/", 1)[0]

        if self.config.name:
            return (
                f"{registry}/{namespace}/{self.config.name_prefix}{STABLE_IMAGE_STREAM}:"
                f"{COMPONENT_FORMAT_REPLACEMENT}"
            )
        return (
            f"{registry}/{namespace}/{self.config.name_prefix}{COMPONENT_FORMAT_REPLACEMENT}:"
            f"{self.config.tag}"
        )
