#!/usr/bin/env python3
import atexit
import logging
import os
import signal
import sys

from ipcam.config import load_config
from ipcam.process_manager import StreamManager
from ipcam.web_server import WebServer


def setup_logging(config):
    """Setup logging configuration"""
    log_file = config['logging']['file']
    os.makedirs(os.path.dirname(log_file) or '.', exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, config['logging']['level']),
        format=config['logging']['format'],
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def main():
    """Main entry point for the IPCam control server"""
    try:
        config = load_config(os.getenv('IPCAM_CONFIG', 'config/config.yaml'))
        setup_logging(config)

        manager = StreamManager(config)

        # Clear leftovers from a crashed previous run
        manager.kill_stale_binaries()
        atexit.register(manager.shutdown)

        def handle_signal(signum, frame):
            logging.info(f"Received signal {signum}, shutting down...")
            sys.exit(0)

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        WebServer(config, manager).run()

    except KeyboardInterrupt:
        print("\nShutdown initiated...")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
