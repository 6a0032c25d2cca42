'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import os
import sys
import shutil
import secrets
import tempfile
from contextlib import contextmanager

import docker
import docker.errors

from memaware.lib import globals
from memaware.lib.errors import ImageBuildError

log = globals.log



def image_name(prefix, suffix):
    """
    Unique image name for one harness run.

    The random tag keeps concurrent or repeated runs on the same host from
    removing each other's image.
    """
    return f'{prefix}:test-containers-docker-{suffix}-{secrets.token_hex(4)}'



def get_docker_client():
    return docker.from_env()



def can_test_docker(client=None, enabled=True):
    """
    Decide once, up front, whether this host can run container memory tests.

    Returns False (never raises) when:
      - the run is disabled in the configuration,
      - the host is not Linux (no cgroups),
      - no Docker daemon answers,
      - the daemon reports that it cannot enforce memory limits.
    """
    if not enabled:
        log.info('Docker tests disabled by configuration')
        return False
    if not sys.platform.startswith('linux'):
        log.info(f'Docker memory tests need a Linux host, this is {sys.platform}')
        return False
    try:
        client = client if client is not None else get_docker_client()
        client.ping()
        info = client.info()
    except docker.errors.DockerException as e:
        log.info(f'Docker engine not available: {e}')
        return False
    if info.get('MemoryLimit') is False:
        log.info('Docker engine does not support memory limits on this host')
        return False
    if info.get('SwapLimit') is False:
        # Not a reason to skip: swap expectations fall back to their tolerated alternates
        log.warning('WARNING: Docker engine has no swap limit support, swap checks will be lenient')
    return True



def prepare_whitebox(whitebox_jar, test_classes):
    """Copy whitebox.jar next to the test classes mounted into the container."""
    if not whitebox_jar:
        return None
    if not test_classes:
        log.warning('whitebox_jar configured without test_classes, not copying it')
        return None
    dest = os.path.join(test_classes, 'whitebox.jar')
    log.info(f'Copying {whitebox_jar} -> {dest}')
    try:
        shutil.copyfile(whitebox_jar, dest)
    except OSError as e:
        raise ImageBuildError(f'Could not copy {whitebox_jar} to {dest}: {e}') from e
    return dest



def write_dockerfile(build_dir, base_image, install_path, with_runtime):
    lines = [f'FROM {base_image}']
    if with_runtime:
        lines.append(f'COPY /runtime {install_path}')
        lines.append(f'ENV JAVA_HOME={install_path}')
    lines.append('CMD ["/bin/bash"]')
    path = os.path.join(build_dir, 'Dockerfile')
    with open(path, 'w') as f:
        f.write('\n'.join(lines) + '\n')
    return path



def build_image(client, name, base_image, runtime_home=None, install_path='/jdk'):
    """
    Build the test image: the base image plus, if given, the runtime under test.

    Raises:
      ImageBuildError: the engine could not build the image.
    """
    log.info(f'Building image {name} from {base_image}')
    with tempfile.TemporaryDirectory(prefix='memaware-build-') as build_dir:
        try:
            if runtime_home:
                shutil.copytree(runtime_home, os.path.join(build_dir, 'runtime'), symlinks=True)
            write_dockerfile(build_dir, base_image, install_path, with_runtime=bool(runtime_home))
        except OSError as e:
            raise ImageBuildError(f'Could not prepare the build context for {name}: {e}') from e
        try:
            image, build_log = client.images.build(path=build_dir, tag=name, rm=True, nocache=True)
        except docker.errors.BuildError as e:
            for chunk in e.build_log or []:
                if 'stream' in chunk:
                    log.error(chunk['stream'].rstrip())
            raise ImageBuildError(f'Failed to build image {name}: {e.msg}') from e
        except docker.errors.DockerException as e:
            raise ImageBuildError(f'Failed to build image {name}: {e}') from e
    log.info(f'Built image {name} ({image.short_id})')
    return image



def remove_image(client, name):
    """Remove the test image. Errors are logged, never raised."""
    log.info(f'Removing image {name}')
    try:
        client.images.remove(name, force=True)
        return True
    except docker.errors.ImageNotFound:
        log.warning(f'Image {name} already gone')
    except docker.errors.APIError as e:
        log.warning(f'Could not remove image {name}: {e}')
    return False



@contextmanager
def image_scope(client, name, base_image, runtime_home=None, install_path='/jdk', retain=False):
    """
    Build an image and remove it exactly once when the block exits.

    Removal happens on every exit path, including assertion failures and
    harness-fatal errors raised inside the block, unless retain is set.
    If the build itself fails there is nothing to remove.
    """
    build_image(client, name, base_image, runtime_home=runtime_home, install_path=install_path)
    try:
        yield name
    finally:
        if retain:
            log.info(f'Retaining image {name} after test')
        else:
            remove_image(client, name)
