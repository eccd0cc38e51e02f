from marketplace.extensions import db
from marketplace.models import AuditLog
from flask import has_request_context, request
import logging
import json

logger = logging.getLogger(__name__)

# Logins, registrations, orders, payments and seller decisions also go
# to a dedicated file.
MAJOR_EVENTS_FILE = 'major_events.log'
MAJOR_ACTION_PREFIXES = (
    'LOGIN',
    'REGISTER',
    'ORDER_',
    'PAYMENT_',
    'SELLER_',
)
PAYLOAD_BRIEF_LIMIT = 600

major_logger = logging.getLogger('major_events')


def _major_events_logger():
    if not major_logger.handlers:
        handler = logging.FileHandler(MAJOR_EVENTS_FILE)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'))
        major_logger.addHandler(handler)
        major_logger.setLevel(logging.INFO)
        major_logger.propagate = False
    return major_logger


def _request_meta(ip, user_agent):
    # Side effects on worker threads have no request
    if not has_request_context():
        return ip, user_agent, None, None
    return (
        ip or request.remote_addr,
        user_agent or request.headers.get('User-Agent'),
        request.path,
        request.method,
    )


def _payload_brief(payload):
    if payload is None:
        return None
    brief = json.dumps(payload, ensure_ascii=False, default=str,
                       separators=(',', ':'))
    if len(brief) > PAYLOAD_BRIEF_LIMIT:
        brief = brief[:PAYLOAD_BRIEF_LIMIT] + '...'
    return brief


def log_audit(
        actor_id=None,
        actor_role='ANONYMOUS',
        action='',
        target_type=None,
        target_id=None,
        payload=None,
        ip=None,
        user_agent=None):
    """Persist an AuditLog row and echo it to the application log.

    Never raises: a failed audit write is logged and rolled back so the
    calling request still succeeds.
    """
    try:
        ip, user_agent, path, method = _request_meta(ip, user_agent)

        audit = AuditLog(
            actor_id=actor_id,
            actor_role=actor_role,
            action=action,
            target_type=target_type,
            target_id=target_id,
            ip=ip,
            user_agent=(user_agent or '')[:500] or None
        )
        if payload:
            audit.set_payload(payload)

        db.session.add(audit)
        db.session.commit()

        line = (
            "action=%s actor=%s:%s target=%s:%s request=%s %s payload=%s"
        )
        args = (
            action, actor_role, actor_id, target_type, target_id,
            method, path, _payload_brief(payload),
        )
        logger.info("AUDIT " + line, *args)
        if action and action.startswith(MAJOR_ACTION_PREFIXES):
            _major_events_logger().info(line, *args)

    except Exception as e:
        logger.error(f"Failed to log audit: {e}", exc_info=True)
        db.session.rollback()
