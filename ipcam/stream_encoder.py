FRAME_RATE = 30
FRAME_SIZE = (1280, 720)
VIDEO_CODEC = 'libx264'
VIDEO_PRESET = 'ultrafast'
VIDEO_TUNE = 'zerolatency'
AUDIO_CODEC = 'aac'
AUDIO_BITRATE = '128k'


def input_spec(camera_index, mic_index, include_audio):
    """Device selector handed to ffmpeg's -i"""
    if include_audio:
        return f"{camera_index}:{mic_index}"
    return f"{camera_index}"


def relay_url(config, host='localhost'):
    port = config['stream']['rtsp_port']
    path = config['stream']['path']
    return f"rtsp://{host}:{port}/{path}"


def build_encoder_args(config, camera_index, mic_index, include_audio):
    """ffmpeg arguments that capture the devices and publish to the local relay"""
    width, height = FRAME_SIZE
    args = [
        '-hide_banner', '-loglevel', 'error', '-nostats',
        '-f', config['stream']['input_format'],
        '-framerate', str(FRAME_RATE),
        '-video_size', f"{width}x{height}",
        '-i', input_spec(camera_index, mic_index, include_audio),
        '-c:v', VIDEO_CODEC,
        '-preset', VIDEO_PRESET,
        '-tune', VIDEO_TUNE,
    ]

    if include_audio:
        args += ['-c:a', AUDIO_CODEC, '-b:a', AUDIO_BITRATE]
    else:
        args += ['-an']

    # Publish over TCP, never UDP
    args += ['-f', 'rtsp', '-rtsp_transport', 'tcp', relay_url(config)]
    return args
