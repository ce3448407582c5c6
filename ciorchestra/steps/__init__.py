"""
ciorchestra.steps - Concrete steps backed by a ClusterClient.

- InputImageTagStep: tag an external base image into the pipeline stream
- ReleaseImagesTagStep: tag the release images and record the release ConfigMap
- ImagesReadyStep: `[images]` gate over every pipeline image
"""

from .common import (
    CONFIG_MAP_NAME,
    PIPELINE_IMAGE_STREAM,
    RPM_REPO_NAME,
    STABLE_IMAGE_STREAM,
)
from .images_ready import IMAGES_TARGET, ImagesReadyStep
from .input_image_tag import InputImageTagStep
from .release_images import ReleaseImagesTagStep

__all__ = [
    "CONFIG_MAP_NAME",
    "PIPELINE_IMAGE_STREAM",
    "RPM_REPO_NAME",
    "STABLE_IMAGE_STREAM",
    "IMAGES_TARGET",
    "ImagesReadyStep",
    "InputImageTagStep",
    "ReleaseImagesTagStep",
]
