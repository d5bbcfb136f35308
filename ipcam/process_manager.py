import logging
import os
import subprocess
import threading
from enum import Enum

from ipcam.binary_stager import bundled_resources, stage
from ipcam.errors import SpawnError, StagingError, StreamAlreadyActiveError
from ipcam.lan_ip import UNKNOWN_ADDRESS, get_lan_ip
from ipcam.reaper import kill_stale_binaries
from ipcam.stream_encoder import build_encoder_args, relay_url
from ipcam.stream_state import NO_AUDIO, SessionState, StreamState


class ProcessRole(str, Enum):
    RELAY = "relay"
    PRODUCER = "producer"

    def __str__(self):
        return self.value


class ManagedProcess:
    """One child process; path and arguments are fixed at construction"""

    def __init__(self, role, executable_path, arguments):
        self._role = role
        self._executable_path = executable_path
        self._arguments = tuple(arguments)
        self._popen = None

    @property
    def role(self):
        return self._role

    @property
    def executable_path(self):
        return self._executable_path

    @property
    def arguments(self):
        return self._arguments

    @property
    def pid(self):
        return self._popen.pid if self._popen else None

    def launch(self):
        if self._popen is not None:
            raise RuntimeError(f"{self.role} already launched")
        try:
            # Own session, so a Ctrl+C in our terminal does not reach the child
            self._popen = subprocess.Popen(
                [self.executable_path, *self.arguments],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise SpawnError(self.role, e) from e
        logging.info(f"{self.role} process started (pid {self.pid})")
        return self

    def is_alive(self):
        return self._popen is not None and self._popen.poll() is None

    def wait(self):
        """Block until the process exits and return its exit code"""
        return self._popen.wait()

    def terminate(self):
        """Ask the process to exit without waiting for it"""
        if not self.is_alive():
            return
        try:
            self._popen.terminate()
        except ProcessLookupError:
            pass

    def join(self, timeout):
        """Wait up to `timeout` seconds for exit, then kill"""
        if self._popen is None:
            return
        try:
            self._popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logging.warning(f"{self.role} didn't stop, killing...")
            self._popen.kill()
            self._popen.wait()


class StreamManager:
    """Runs mediamtx and ffmpeg as one streaming session.

    start() stages the binaries and launches the relay, then hands off to a
    session thread that waits SETTLE_DELAY, launches the producer, and keeps
    relaunching it RESTART_BACKOFF seconds after every unexpected exit until
    stop() is called.
    """

    SETTLE_DELAY = 2.0
    RESTART_BACKOFF = 2.0

    def __init__(self, config, state=None, resolve_address=get_lan_ip):
        self.config = config
        self.state = state or StreamState()
        self.resolve_address = resolve_address
        self.support_dir = os.path.abspath(os.path.expanduser(config['binaries']['support_dir']))
        self.processes = {}
        self._lock = threading.RLock()
        self._cancel = None
        self._session_thread = None

    # Observable state

    @property
    def status(self):
        return self.state.status

    @property
    def is_streaming(self):
        return self.state.status.is_streaming

    @property
    def rtsp_url(self):
        return self.state.status.rtsp_url

    @property
    def status_message(self):
        return self.state.status.status_message

    def subscribe(self, callback):
        return self.state.subscribe(callback)

    @property
    def relay_pid(self):
        with self._lock:
            relay = self.processes.get(ProcessRole.RELAY)
            return relay.pid if relay else None

    @property
    def producer_pid(self):
        with self._lock:
            producer = self.processes.get(ProcessRole.PRODUCER)
            return producer.pid if producer else None

    # Session control

    def start(self, camera_index, mic_index=NO_AUDIO, include_audio=False):
        """Stage binaries, launch the relay and schedule the producer.

        Returns once the relay is running; the switch to Streaming happens
        on the session thread after the settle delay.
        """
        with self._lock:
            current = self.state.status.state
            if current in SessionState.active_states():
                raise StreamAlreadyActiveError(f"stream is already {current}")

            try:
                stage(bundled_resources(self.config))
            except StagingError as e:
                return self.state.transition(SessionState.ERROR, error=e)

            relay = self._process(ProcessRole.RELAY, [self._binary_path('relay_config')])
            try:
                relay.launch()
            except SpawnError as e:
                logging.error(str(e))
                return self.state.transition(SessionState.ERROR, error=e)
            self.processes[ProcessRole.RELAY] = relay

            cancel = threading.Event()
            self._cancel = cancel
            status = self.state.transition(SessionState.STARTING)

            producer_args = build_encoder_args(self.config, camera_index, mic_index, include_audio)
            self._session_thread = threading.Thread(
                target=self._run_session,
                args=(cancel, producer_args),
                name='StreamSession',
                daemon=True,
            )
            self._session_thread.start()
            return status

    def stop(self, timeout=None):
        """End the session.

        The session thread is cancelled before any process is signalled, so
        a pending relaunch can never fire afterwards. With `timeout`, waits
        that long for each child to exit before killing it; otherwise the
        children are reaped on a background thread.
        """
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()
                self._cancel = None

            processes = [p for p in (self.processes.get(ProcessRole.PRODUCER),
                                     self.processes.get(ProcessRole.RELAY)) if p]
            self.processes = {}
            for process in processes:
                logging.info(f"Stopping {process.role}...")
                process.terminate()
            status = self.state.transition(SessionState.STOPPED)

        if timeout is not None:
            for process in processes:
                process.join(timeout)
        else:
            self._reap_in_background(processes)
        return status

    def kill_stale_binaries(self):
        """Terminate every ffmpeg/mediamtx on the machine, ours or not"""
        binaries = self.config['binaries']
        return kill_stale_binaries([binaries['producer'], binaries['relay']])

    def shutdown(self):
        """Application exit: stop the session, then reap anything left over"""
        self.stop(timeout=self.config['stream']['stop_timeout'])
        self.kill_stale_binaries()

    # Internals

    def _binary_path(self, key):
        return os.path.join(self.support_dir, self.config['binaries'][key])

    def _process(self, role, arguments):
        key = 'relay' if role == ProcessRole.RELAY else 'producer'
        return ManagedProcess(role, self._binary_path(key), arguments)

    def _reap_in_background(self, processes):
        """Collect exit statuses off-thread so no zombie is left behind"""
        if not processes:
            return

        def reap():
            for process in processes:
                process.wait()

        threading.Thread(target=reap, name='StreamReaper', daemon=True).start()

    def _launch_producer(self, producer_args):
        producer = self._process(ProcessRole.PRODUCER, producer_args).launch()
        self.processes[ProcessRole.PRODUCER] = producer
        return producer

    def _run_session(self, cancel, producer_args):
        if cancel.wait(self.SETTLE_DELAY):
            logging.info("Stream stopped before the producer was launched")
            return

        try:
            address = self.resolve_address()
        except Exception as e:
            logging.warning(f"Could not resolve LAN address: {e}")
            address = UNKNOWN_ADDRESS
        url = relay_url(self.config, host=address)

        with self._lock:
            if cancel.is_set():
                return
            try:
                producer = self._launch_producer(producer_args)
            except SpawnError as e:
                logging.error(str(e))
                cancel.set()
                self._cancel = None
                relay = self.processes.pop(ProcessRole.RELAY, None)
                if relay:
                    relay.terminate()
                    self._reap_in_background([relay])
                self.state.transition(SessionState.ERROR, error=e)
                return
            self.state.transition(SessionState.STREAMING, rtsp_url=url)

        self._watch_producer(cancel, producer, producer_args)

    def _watch_producer(self, cancel, producer, producer_args):
        """Relaunch the producer whenever it exits, until cancelled"""
        while True:
            if producer is not None:
                exit_code = producer.wait()
                if cancel.is_set():
                    return
                logging.warning(f"producer exited with code {exit_code}, "
                                f"restarting in {self.RESTART_BACKOFF}s")
                with self._lock:
                    if cancel.is_set():
                        return
                    self.processes.pop(ProcessRole.PRODUCER, None)
                    self.state.transition(SessionState.RECONNECTING)

            if cancel.wait(self.RESTART_BACKOFF):
                return

            with self._lock:
                if cancel.is_set():
                    return
                try:
                    producer = self._launch_producer(producer_args)
                except SpawnError as e:
                    logging.error(f"{e}, retrying in {self.RESTART_BACKOFF}s")
                    producer = None
                    continue
                self.state.transition(SessionState.STREAMING)
