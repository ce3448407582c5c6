"""
Assemble the step list for a job from its configuration.

Steps:
- one InputImageTagStep per configured base image
- a ReleaseImagesTagStep when a release is configured
- the `[images]` gate over every pipeline image

Every step's provided parameters are registered with `params`.
"""

import logging

from ciorchestra.cluster import ClusterClient
from ciorchestra.config import CiOrchestraConfig
from ciorchestra.links import internal_image_link
from ciorchestra.parameters import DeferredParameters, register_provided
from ciorchestra.step import Step
from ciorchestra.steps import ImagesReadyStep, InputImageTagStep, ReleaseImagesTagStep

logger = logging.getLogger(__name__)


def steps_from_config(
    config: CiOrchestraConfig,
    client: ClusterClient,
    params: DeferredParameters,
) -> list[Step]:
    """Build every step the configuration describes."""
    job_spec = config.get_job_spec()
    steps: list[Step] = []

    image_links = []
    for image_config in config.get_input_images():
        steps.append(InputImageTagStep(image_config, client, job_spec))
        image_links.append(internal_image_link(image_config.to))

    release = config.get_release()
    if release is not None:
        steps.append(ReleaseImagesTagStep(release, client, params, job_spec))

    steps.append(ImagesReadyStep(image_links))

    register_provided(steps, params)
    logger.debug(f"Assembled {len(steps)} step(s) for namespace {job_spec.namespace}")
    return steps
