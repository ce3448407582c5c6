"""
InputImageTagStep - make an external base image available in the pipeline.

Ensures a tag exists on the job's pipeline image stream that resolves to
the configured base image, pinned to the digest the base tag pointed at
when the step first resolved it.
"""

import logging
import threading

from ciorchestra.cluster import IMAGE_STREAM_TAG, ClusterClient
from ciorchestra.errors import AlreadyExistsError, ClusterError, NotFoundError, StepError
from ciorchestra.links import StepLink, external_image_link, internal_image_link
from ciorchestra.schemas import InputImageTagStepConfiguration, JobSpec
from ciorchestra.step import InputDefinition, Step
from ciorchestra.steps.common import PIPELINE_IMAGE_STREAM, print_resource

logger = logging.getLogger(__name__)


class InputImageTagStep(Step):
    """Tag `base_image` into `pipeline:<to>` in the job namespace."""

    def __init__(self, config: InputImageTagStepConfiguration, client: ClusterClient, job_spec: JobSpec):
        self.config = config
        self._client = client
        self._job_spec = job_spec
        self._image_name = ""
        self._lock = threading.Lock()

    def describe(self) -> str:
        return f"input-image-tag[{self.config.to}]"

    def inputs(self, dry: bool) -> InputDefinition:
        with self._lock:
            if self._image_name:
                return [self._image_name]

            base = self.config.base_image
            try:
                ist = self._client.get(IMAGE_STREAM_TAG, base.namespace, f"{base.name}:{base.tag}")
            except ClusterError as e:
                raise StepError(self.describe(), f"could not resolve base image: {e}") from e

            image_name = (ist.get("image") or {}).get("metadata", {}).get("name", "")
            if not image_name:
                raise StepError(self.describe(), f"base image {base} does not reference an image")

            logger.info(f"Resolved {base} to {image_name}")
            self._image_name = image_name
            return [image_name]

    def run(self, dry: bool) -> None:
        base = self.config.base_image
        logger.info(f"Tagging {base} into {PIPELINE_IMAGE_STREAM}:{self.config.to}")

        image_name = self.inputs(dry)[0]
        ist = {
            "kind": IMAGE_STREAM_TAG,
            "metadata": {
                "name": f"{PIPELINE_IMAGE_STREAM}:{self.config.to}",
                "namespace": self._job_spec.namespace,
            },
            "tag": {
                "referencePolicy": {"type": "Local"},
                "from": {
                    "kind": "ImageStreamImage",
                    "name": f"{base.name}@{image_name}",
                    "namespace": base.namespace,
                },
            },
        }
        if dry:
            print_resource(ist)
            return

        try:
            self._client.create(IMAGE_STREAM_TAG, self._job_spec.namespace, ist)
        except AlreadyExistsError:
            pass

    def done(self) -> bool:
        logger.info(f"Checking for existence of {PIPELINE_IMAGE_STREAM}:{self.config.to}")
        try:
            self._client.get(
                IMAGE_STREAM_TAG,
                self._job_spec.namespace,
                f"{PIPELINE_IMAGE_STREAM}:{self.config.to}",
            )
        except NotFoundError:
            return False
        return True

    def requires(self) -> list[StepLink]:
        return [external_image_link(self.config.base_image)]

    def creates(self) -> list[StepLink]:
        return [internal_image_link(self.config.to)]
