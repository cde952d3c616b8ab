import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma-separated list of origins allowed to open a socket
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',') if o.strip()]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Countdown bounds (seconds)
    COUNTDOWN_DEFAULT_SEC = int(os.environ.get('COUNTDOWN_DEFAULT_SEC', '3'))
    COUNTDOWN_MIN_SEC = int(os.environ.get('COUNTDOWN_MIN_SEC', '1'))
    COUNTDOWN_MAX_SEC = int(os.environ.get('COUNTDOWN_MAX_SEC', '10'))
    # Extra delay before a round goes live so clients never see it early (ms)
    COUNTDOWN_GRACE_MS = int(os.environ.get('COUNTDOWN_GRACE_MS', '100'))
    # Ready players needed before the first round may start
    MIN_READY_PLAYERS = int(os.environ.get('MIN_READY_PLAYERS', '2'))
    # End the round automatically once every player has pressed
    AUTO_END_ROUND = os.environ.get('AUTO_END_ROUND', '1') not in ('0', 'false', 'False')
    ROOM_CODE_ATTEMPTS = int(os.environ.get('ROOM_CODE_ATTEMPTS', '100'))
