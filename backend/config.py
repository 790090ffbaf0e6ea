import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///hotseat.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Bearer tokens; falls back to SECRET_KEY when unset
    JWT_SECRET = os.environ.get('JWT_SECRET')
    JWT_EXPIRES_MIN = int(os.environ.get('JWT_EXPIRES_MIN', '60'))
    FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:3000')
    # Save files land in SAVES_DIR/<game_id>/
    SAVES_DIR = os.environ.get('SAVES_DIR', 'saves')
    MAX_SAVE_SIZE_MB = int(os.environ.get('MAX_SAVE_SIZE_MB', '100'))
    # Leave headroom for the multipart envelope
    MAX_CONTENT_LENGTH = (MAX_SAVE_SIZE_MB + 1) * 1024 * 1024
    ALLOWED_SAVE_EXTENSIONS = os.environ.get('ALLOWED_SAVE_EXTENSIONS', '.zip,.sav')
    # Uploads per user per minute. 0 disables.
    UPLOAD_RATE_LIMIT = int(os.environ.get('UPLOAD_RATE_LIMIT', '10'))
    # Live stream: per-subscriber queue bound and idle heartbeat (sec)
    SSE_QUEUE_SIZE = int(os.environ.get('SSE_QUEUE_SIZE', '32'))
    SSE_KEEPALIVE_SEC = int(os.environ.get('SSE_KEEPALIVE_SEC', '15'))
    # Notifications: mailgun, console or none
    NOTIFIER = os.environ.get('NOTIFIER', 'console')
    NOTIFY_TIMEOUT_SEC = int(os.environ.get('NOTIFY_TIMEOUT_SEC', '10'))
    MAILGUN_API_KEY = os.environ.get('MAILGUN_API_KEY', '')
    MAILGUN_DOMAIN = os.environ.get('MAILGUN_DOMAIN', '')
    MAIL_SENDER = os.environ.get('MAIL_SENDER', 'Hotseat <noreply@hotseat.local>')
