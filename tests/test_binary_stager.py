import os
import shutil
import stat

import pytest

from ipcam.binary_stager import StagedResource, bundled_resources, stage
from ipcam.errors import StagingError


def mode(path):
    return stat.S_IMODE(os.stat(path).st_mode)


def snapshot(directory):
    result = {}
    for name in sorted(os.listdir(directory)):
        path = os.path.join(directory, name)
        with open(path, 'rb') as f:
            result[name] = (f.read(), mode(path), os.stat(path).st_mtime_ns)
    return result


def test_bundled_resources_describe_binaries_and_relay_config(config, bundle_dir, support_dir):
    resources = {r.name: r for r in bundled_resources(config)}

    assert set(resources) == {'ffmpeg', 'mediamtx', 'mediamtx.yml'}
    assert resources['ffmpeg'].executable
    assert resources['mediamtx'].executable
    assert not resources['mediamtx.yml'].executable
    assert resources['mediamtx'].source_path == os.path.join(str(bundle_dir), 'mediamtx')
    assert resources['mediamtx.yml'].destination_path == os.path.join(support_dir, 'mediamtx.yml')


def test_stage_copies_into_support_dir(config, bundle_dir, support_dir):
    os.chmod(bundle_dir / 'ffmpeg', 0o644)

    stage(bundled_resources(config))

    assert sorted(os.listdir(support_dir)) == ['ffmpeg', 'mediamtx', 'mediamtx.yml']
    assert mode(os.path.join(support_dir, 'ffmpeg')) == 0o755
    assert mode(os.path.join(support_dir, 'mediamtx')) == 0o755
    with open(os.path.join(support_dir, 'mediamtx.yml')) as f:
        assert f.read() == "rtspAddress: :8554\n"


def test_stage_is_idempotent(config, support_dir):
    stage(bundled_resources(config))
    before = snapshot(support_dir)

    stage(bundled_resources(config))

    assert snapshot(support_dir) == before


def test_stage_never_overwrites_existing_files(config, bundle_dir, support_dir):
    stage(bundled_resources(config))
    (bundle_dir / 'mediamtx.yml').write_text("rtspAddress: :9999\n")

    stage(bundled_resources(config))

    with open(os.path.join(support_dir, 'mediamtx.yml')) as f:
        assert f.read() == "rtspAddress: :8554\n"


def test_missing_bundle_source_aborts_staging(tmp_path):
    bundle = tmp_path / 'bundle'
    bundle.mkdir()
    (bundle / 'second').write_text("x")
    resources = [
        StagedResource('first', str(bundle / 'first'), str(tmp_path / 'out' / 'first'), True),
        StagedResource('second', str(bundle / 'second'), str(tmp_path / 'out' / 'second')),
    ]

    with pytest.raises(StagingError) as excinfo:
        stage(resources)

    assert excinfo.value.resource == 'first'
    assert 'first' in str(excinfo.value)
    assert not (tmp_path / 'out' / 'second').exists()


def test_failed_copy_leaves_no_partial_file(config, support_dir, monkeypatch):
    def partial_copy(src, dst):
        with open(dst, 'w') as f:
            f.write("trunc")
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(shutil, 'copyfile', partial_copy)

    with pytest.raises(StagingError) as excinfo:
        stage(bundled_resources(config))

    assert excinfo.value.resource == 'ffmpeg'
    assert not os.path.exists(os.path.join(support_dir, 'ffmpeg'))


def test_cleanup_failure_still_raises_staging_error(config, monkeypatch):
    def failing_copy(src, dst):
        raise OSError(13, "Permission denied")

    def failing_remove(path):
        raise OSError(2, "No such file or directory")

    monkeypatch.setattr(shutil, 'copyfile', failing_copy)
    monkeypatch.setattr(os, 'remove', failing_remove)

    with pytest.raises(StagingError) as excinfo:
        stage(bundled_resources(config))

    assert isinstance(excinfo.value.cause, OSError)
    assert excinfo.value.cause.errno == 13
