from flask import Flask, request, jsonify
from flask_cors import CORS
import time
import logging

from ipcam.errors import StreamAlreadyActiveError
from ipcam.stream_state import NO_AUDIO, SessionState


class WebServer:
    """JSON control API in front of a StreamManager"""

    def __init__(self, config, manager):
        self.config = config
        self.manager = manager
        self.start_time = time.time()

        self.app = Flask(__name__)
        CORS(self.app, resources={
            r"/api/*": {
                "origins": config['control']['cors_origins'],
                "methods": ["GET", "POST", "OPTIONS"],
                "allow_headers": ["Content-Type"]
            }
        })

        self.setup_routes()

    def _parse_start_request(self, payload):
        if not isinstance(payload, dict):
            raise ValueError("request body must be a JSON object")
        camera_index = payload.get('camera_index', 0)
        mic_index = payload.get('mic_index', NO_AUDIO)
        include_audio = payload.get('include_audio', mic_index != NO_AUDIO)

        for name, value in (('camera_index', camera_index), ('mic_index', mic_index)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer")
        if not isinstance(include_audio, bool):
            raise ValueError("include_audio must be a boolean")
        if camera_index < 0:
            raise ValueError("camera_index must not be negative")
        if include_audio and mic_index < 0:
            raise ValueError("mic_index is required when include_audio is set")

        return camera_index, mic_index, include_audio

    def setup_routes(self):
        """Setup Flask routes"""

        @self.app.route('/health')
        def health():
            return {
                'status': 'ok',
                'timestamp': time.time(),
                'uptime': time.time() - self.start_time
            }

        @self.app.route('/api/status')
        def status():
            return jsonify(self.manager.status.to_dict())

        @self.app.route('/api/start', methods=['POST'])
        def start():
            try:
                camera_index, mic_index, include_audio = self._parse_start_request(
                    request.get_json(silent=True) or {})
            except ValueError as e:
                return jsonify({'success': False, 'error': str(e)}), 400

            try:
                status = self.manager.start(camera_index, mic_index, include_audio)
            except StreamAlreadyActiveError as e:
                return jsonify({'success': False, 'error': str(e)}), 409

            if status.state == SessionState.ERROR:
                return jsonify({'success': False, 'error': status.status_message, **status.to_dict()}), 500

            logging.info(f"Start requested: camera={camera_index} mic={mic_index} audio={include_audio}")
            return jsonify({'success': True, **status.to_dict()}), 202

        @self.app.route('/api/stop', methods=['POST'])
        def stop():
            status = self.manager.stop(timeout=self.config['stream']['stop_timeout'])
            return jsonify({'success': True, **status.to_dict()}), 200

    def run(self):
        """Start web server"""
        host = self.config['control']['host']
        port = self.config['control']['port']

        logging.info(f"Starting control API on {host}:{port}")
        self.app.run(
            host=host,
            port=port,
            debug=False,
            threaded=True
        )
