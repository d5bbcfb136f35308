import logging
import os
import shutil
from dataclasses import dataclass

from ipcam.errors import StagingError

EXECUTABLE_MODE = 0o755


@dataclass(frozen=True)
class StagedResource:
    name: str
    source_path: str
    destination_path: str
    executable: bool = False


def bundled_resources(config):
    """Resources the relay and producer need, as described by the config"""
    binaries = config['binaries']
    bundle_dir = os.path.abspath(os.path.expanduser(binaries['bundle_dir']))
    support_dir = os.path.abspath(os.path.expanduser(binaries['support_dir']))

    resources = []
    for name, executable in ((binaries['producer'], True),
                             (binaries['relay'], True),
                             (binaries['relay_config'], False)):
        resources.append(StagedResource(
            name=name,
            source_path=os.path.join(bundle_dir, name),
            destination_path=os.path.join(support_dir, name),
            executable=executable,
        ))
    return resources


def stage(resources):
    """Copy missing resources out of the bundle.

    Existing destination files are left exactly as they are, so a newer
    bundled binary never replaces an installed one. The first failure aborts
    the whole operation with a StagingError.
    """
    for resource in resources:
        if os.path.exists(resource.destination_path):
            continue

        if not os.path.isfile(resource.source_path):
            logging.error(f"Resource not found in bundle: {resource.source_path}")
            raise StagingError(resource.name, "not found in bundle")

        try:
            os.makedirs(os.path.dirname(resource.destination_path), exist_ok=True)
            shutil.copyfile(resource.source_path, resource.destination_path)
            if resource.executable:
                os.chmod(resource.destination_path, EXECUTABLE_MODE)
        except OSError as e:
            logging.error(f"Failed to stage {resource.name}: {e}")
            # A half-written copy would count as staged on the next run
            try:
                os.remove(resource.destination_path)
            except OSError as cleanup_error:
                logging.warning(f"Could not remove partial copy of {resource.name}: {cleanup_error}")
            raise StagingError(resource.name, e) from e

        logging.info(f"Staged {resource.name} -> {resource.destination_path}")
