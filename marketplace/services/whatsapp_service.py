from flask import current_app
import requests
import logging

logger = logging.getLogger(__name__)


def send_whatsapp(phone, message, api_key):
    """Push a WhatsApp message through the CallMeBot webhook.

    The recipient must have registered with CallMeBot to obtain ``api_key``.
    Missing parameters are logged and skipped; HTTP failures raise
    ``requests.RequestException``.
    """
    if not phone or not message or not api_key:
        logger.info(
            "WhatsApp missing params: phone=%s message=%s apikey=%s",
            bool(phone), bool(message), bool(api_key))
        return False

    response = requests.get(
        current_app.config['WHATSAPP_API_URL'],
        params={'phone': phone, 'text': message, 'apikey': api_key},
        timeout=current_app.config.get('WHATSAPP_TIMEOUT', 10),
    )
    response.raise_for_status()
    logger.info("WhatsApp notification sent to %s", phone)
    return True
