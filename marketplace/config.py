import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


def _split_csv(value):
    return [v.strip() for v in (value or '').split(',') if v.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or (
        'dev-secret-key-change-in-production'
    )
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or (
        'sqlite:///marketplace.db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Token signing
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET') or 'secretkey'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        days=int(os.environ.get('JWT_EXPIRES_DAYS', '7'))
    )

    # CORS: production only accepts the configured frontend.
    APP_ENV = os.environ.get('APP_ENV', 'development')
    FRONTEND_URL = os.environ.get('FRONTEND_URL', 'https://yourdomain.com')
    CORS_ORIGINS = (
        [FRONTEND_URL]
        if APP_ENV == 'production'
        else ['http://localhost:3000', 'http://localhost:3001']
    )

    # Mail (resend)
    RESEND_API_KEY = os.environ.get('RESEND_API_KEY', '')
    MAIL_FROM = os.environ.get('MAIL_FROM', 'orders@karyana.store')
    STORE_NAME = os.environ.get('STORE_NAME', 'Karyana Store')
    ADMIN_EMAILS = _split_csv(os.environ.get('ADMIN_EMAIL'))

    # WhatsApp webhook (CallMeBot)
    WHATSAPP_API_URL = os.environ.get(
        'WHATSAPP_API_URL', 'https://api.callmebot.com/whatsapp.php'
    )
    WHATSAPP_ADMIN_PHONE = os.environ.get('WHATSAPP_ADMIN_PHONE', '')
    WHATSAPP_ADMIN_API_KEY = os.environ.get('WHATSAPP_ADMIN_API_KEY', '')
    WHATSAPP_TIMEOUT = float(os.environ.get('WHATSAPP_TIMEOUT', '10'))

    # Run post-commit notifications on the request thread instead of a
    # background thread.
    SIDE_EFFECTS_INLINE = (
        os.environ.get('SIDE_EFFECTS_INLINE', 'false').lower() == 'true'
    )

    # Pagination configuration
    ITEMS_PER_PAGE = 10
    MAX_PER_PAGE = 100

    # Product images may still arrive as base64 inside JSON bodies
    MAX_CONTENT_LENGTH = 100 * 1024 * 1024

    # Image uploads
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(
        os.path.abspath(os.path.dirname(__file__)), 'static', 'uploads'
    )
    UPLOAD_MAX_BYTES = 5 * 1024 * 1024
    UPLOAD_EXTENSIONS = ('jpg', 'jpeg', 'png', 'webp')
    UPLOAD_MIMETYPES = ('image/jpeg', 'image/png', 'image/webp')
