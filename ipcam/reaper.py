import logging

import psutil


def kill_by_name(name, timeout=5):
    """Terminate every process called exactly `name` and wait for them.

    Matches on the OS process name, so instances started by a previous,
    crashed session are caught as well as our own. Returns the number of
    processes that were signalled.
    """
    victims = []
    for proc in psutil.process_iter(['name']):
        if proc.info['name'] != name:
            continue
        try:
            proc.terminate()
            victims.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logging.warning(f"Could not terminate {name} (pid {proc.pid}): {e}")

    if not victims:
        return 0

    _, alive = psutil.wait_procs(victims, timeout=timeout)
    for proc in alive:
        logging.warning(f"{name} (pid {proc.pid}) didn't stop, killing...")
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass
    if alive:
        psutil.wait_procs(alive, timeout=timeout)

    logging.info(f"Reaped {len(victims)} stale {name} process(es)")
    return len(victims)


def kill_stale_binaries(names, timeout=5):
    """Reap leftover relay and producer instances, one name at a time"""
    return sum(kill_by_name(name, timeout=timeout) for name in names)
