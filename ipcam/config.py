import copy
import os
import sys

import yaml


def default_support_dir():
    """Per-user writable directory for the staged binaries"""
    if sys.platform == 'darwin':
        return os.path.expanduser('~/Library/Application Support/IPCam')
    data_home = os.environ.get('XDG_DATA_HOME') or os.path.expanduser('~/.local/share')
    return os.path.join(data_home, 'ipcam')


DEFAULTS = {
    'binaries': {
        'bundle_dir': 'bin',
        'support_dir': default_support_dir(),
        'producer': 'ffmpeg',
        'relay': 'mediamtx',
        'relay_config': 'mediamtx.yml',
    },
    'stream': {
        'input_format': 'avfoundation',
        'rtsp_port': 8554,
        'path': 'webcam',
        'stop_timeout': 5,
    },
    'control': {
        'host': '127.0.0.1',
        'port': 8080,
        'cors_origins': [r"http://localhost:\d+"],
    },
    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'file': 'logs/ipcam.log',
    },
}


def _merge(base, override):
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(path='config/config.yaml'):
    """Load the YAML config over the defaults, then apply env overrides"""
    config = copy.deepcopy(DEFAULTS)

    if path and os.path.exists(path):
        with open(path, 'r') as f:
            overrides = yaml.safe_load(f) or {}
        _merge(config, overrides)
        # A bundle_dir set in the file is relative to the file's directory
        if 'bundle_dir' in (overrides.get('binaries') or {}):
            config['binaries']['bundle_dir'] = os.path.join(
                os.path.dirname(os.path.abspath(path)),
                os.path.expanduser(config['binaries']['bundle_dir']))

    config['binaries']['bundle_dir'] = os.getenv('IPCAM_BUNDLE_DIR', config['binaries']['bundle_dir'])
    config['binaries']['support_dir'] = os.getenv('IPCAM_SUPPORT_DIR', config['binaries']['support_dir'])
    config['control']['port'] = int(os.getenv('PORT', config['control']['port']))
    return config
