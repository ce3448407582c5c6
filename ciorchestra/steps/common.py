"""Names shared by the concrete steps and dry-run rendering."""

import json
import sys
from typing import Any, TextIO

# Image stream in the job namespace that collects every pipeline image
PIPELINE_IMAGE_STREAM = "pipeline"

# Image stream a named release is copied into
STABLE_IMAGE_STREAM = "stable"

# Route serving the RPM repository for a release
RPM_REPO_NAME = "rpm-repo"

# ConfigMap recording where release images and RPMs are served from
CONFIG_MAP_NAME = "release"


def print_resource(obj: dict[str, Any], out: TextIO | None = None) -> None:
    """Render a would-be resource for dry runs, one JSON document per line."""
    stream = out or sys.stdout
    stream.write(json.dumps(obj, sort_keys=True) + "\n")
    stream.flush()
