import os
import time

import psutil

LAN_ADDRESS = "192.168.1.20"

# Stand-ins for the real binaries: record pid and argv, then idle until signalled
FAKE_BINARY = """#!/bin/sh
dir=$(dirname "$0")
echo $$ >> "$dir/{name}.launches"
printf '%s\\n' "$@" > "$dir/{name}.args"
exec sleep 30
"""


def write_executable(path, content):
    with open(path, 'w') as f:
        f.write(content)
    os.chmod(path, 0o755)


def wait_until(predicate, timeout=5.0, interval=0.02):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def process_gone(pid):
    try:
        return psutil.Process(pid).status() == psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return True


def read_lines(path):
    if not os.path.exists(path):
        return []
    with open(path) as f:
        return f.read().splitlines()
