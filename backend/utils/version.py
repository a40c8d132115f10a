"""Application version lookup."""

import os
from importlib import metadata

_VERSION_FILE = os.path.join(os.path.dirname(__file__), '..', '..', 'VERSION')


def get_app_version() -> str:
    """
    Version of the running service.

    Uses the installed distribution's metadata, then the VERSION file at the
    repository root (source checkouts), then 'dev'.
    """
    try:
        return metadata.version('dockpanel')
    except metadata.PackageNotFoundError:
        pass

    try:
        with open(_VERSION_FILE) as f:
            version = f.read().strip()
        return version.removeprefix('v') if version else 'dev'
    except OSError:
        return 'dev'
