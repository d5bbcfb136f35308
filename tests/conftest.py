import copy

import pytest

from ipcam.config import DEFAULTS
from ipcam.process_manager import StreamManager
from tests.helpers import FAKE_BINARY, LAN_ADDRESS, write_executable


@pytest.fixture
def bundle_dir(tmp_path):
    bundle = tmp_path / "bundle"
    bundle.mkdir()
    for name in ('ffmpeg', 'mediamtx'):
        write_executable(bundle / name, FAKE_BINARY.format(name=name))
    (bundle / "mediamtx.yml").write_text("rtspAddress: :8554\n")
    return bundle


@pytest.fixture
def config(tmp_path, bundle_dir):
    config = copy.deepcopy(DEFAULTS)
    config['binaries']['bundle_dir'] = str(bundle_dir)
    config['binaries']['support_dir'] = str(tmp_path / "support")
    config['stream']['stop_timeout'] = 2
    return config


@pytest.fixture
def support_dir(config):
    return config['binaries']['support_dir']


@pytest.fixture
def manager(config):
    manager = StreamManager(config, resolve_address=lambda: LAN_ADDRESS)
    manager.SETTLE_DELAY = 0.1
    manager.RESTART_BACKOFF = 0.1
    yield manager
    manager.stop(timeout=2)
