"""AWS Lambda handlers for the talent calendar backend functions."""
import base64
import json
import logging
import os
import time
from typing import Dict, Any, Optional

from processor.event_processor import EventProcessor
from processor.models import COMMIT_MODES
from scraper.wiki_images import WikiImageScraper
from storage.calendar_store import CalendarStore, StorageError


CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
}

logger = logging.getLogger(__name__)

MIN_YEAR = 2025
MAX_YEAR = 2027


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _response(status_code: int, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    headers = dict(CORS_HEADERS)
    if body is not None:
        headers['Content-Type'] = 'application/json'
    return {
        'statusCode': status_code,
        'headers': headers,
        'body': json.dumps(body) if body is not None else ''
    }


def _header(event: Dict[str, Any], name: str) -> str:
    """Case-insensitive header lookup on an API Gateway event."""
    for key, value in (event.get('headers') or {}).items():
        if key.lower() == name.lower():
            return value or ''
    return ''


def _method(event: Dict[str, Any]) -> str:
    method = event.get('httpMethod')
    if not method:
        method = event.get('requestContext', {}).get('http', {}).get('method', 'POST')
    return method.upper()


def _json_body(event: Dict[str, Any]) -> Any:
    """
    Decode the request body.

    Raises:
        ValueError: If the body is not valid JSON
    """
    body = event.get('body')
    if isinstance(body, (dict, list)):
        return body
    if not body:
        raise ValueError('Empty request body')
    if event.get('isBase64Encoded'):
        body = base64.b64decode(body).decode('utf-8')
    return json.loads(body)


def _authorize_commit(store: CalendarStore, user_id: str, talent_id: str, mode: str) -> Optional[Dict[str, Any]]:
    """
    Check the caller may commit in the requested mode.

    Returns:
        Error response, or None when the caller is allowed
    """
    if mode == 'replace':
        if not store.has_permission(user_id, 'calendar:manage'):
            logger.error('Replace Year mode requires calendar:manage permission')
            return _response(403, {'error': 'Forbidden: calendar:manage required for Replace Year mode'})
        return None

    # merge: calendar:edit, or calendar:edit_own on the caller's own talent
    if store.has_permission(user_id, 'calendar:edit'):
        return None
    if not store.has_permission(user_id, 'calendar:edit_own'):
        logger.error('User lacks calendar edit permissions')
        return _response(403, {'error': 'Forbidden: calendar edit permission required'})
    if not store.is_own_talent(talent_id, user_id):
        logger.error('User cannot edit calendar for this talent')
        return _response(403, {'error': 'Forbidden: can only edit your own talent calendar'})
    return None


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Weekend matrix commit function.

    Reconciles one talent's events for one year with the submitted batch
    in merge or replace mode.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        Proxy response; the 200 body is {ok, counts, removed, errors?}
    """
    base_url = os.environ.get('BAAS_URL', '')
    service_key = os.environ.get('BAAS_SERVICE_ROLE_KEY', '')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    chunk_size = int(os.environ.get('COMMIT_CHUNK_SIZE', '500'))

    setup_logging(log_level)

    if _method(event) == 'OPTIONS':
        return _response(200)

    start_time = time.time()
    logger.info('Weekend Matrix Commit - Request received')

    try:
        auth = _header(event, 'Authorization')
        jwt = auth[7:] if auth.startswith('Bearer ') else None
        if not jwt:
            logger.error('Missing Authorization Bearer token')
            return _response(401, {'error': 'Missing Authorization Bearer token'})

        try:
            body = _json_body(event)
        except ValueError as e:
            logger.error(f"Invalid JSON: {e}")
            return _response(400, {'error': 'Invalid JSON'})
        if not isinstance(body, dict):
            return _response(400, {'error': 'Invalid JSON'})

        talent_id = body.get('talentId')
        year = body.get('year')
        mode = body.get('mode')
        events = body.get('events') or []

        logger.info(
            f"Processing commit request: {len(events) if isinstance(events, list) else 0} "
            f"events, mode: {mode}, year: {year}"
        )

        if mode not in COMMIT_MODES:
            return _response(400, {'error': "mode must be 'merge' or 'replace'"})
        if not talent_id:
            return _response(400, {'error': 'talentId is required'})
        if not isinstance(events, list):
            return _response(400, {'error': 'events must be an array'})

        store = CalendarStore(
            base_url=base_url,
            service_key=service_key,
            access_token=jwt,
            timeout=timeout_seconds,
            chunk_size=chunk_size
        )

        user = store.get_user()
        if not user:
            return _response(401, {'error': 'Unauthorized'})
        user_id = user['id']
        logger.info(f"Authenticated user: {user_id}")

        forbidden = _authorize_commit(store, user_id, talent_id, mode)
        if forbidden:
            return forbidden

        if not isinstance(year, int) or isinstance(year, bool) or not MIN_YEAR <= year <= MAX_YEAR:
            logger.error(f"Invalid year: {year}")
            return _response(400, {'error': f'Year must be between {MIN_YEAR} and {MAX_YEAR}'})

        processor = EventProcessor()
        accepted, rejections = processor.filter_for_commit(events, talent_id, year)

        try:
            result = store.commit_events(talent_id, year, mode, accepted)
        except StorageError as e:
            logger.error(
                f"Error during commit for talent {talent_id}: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return _response(500, {'error': 'Commit failed', 'detail': str(e)})

        result.counts.failed += len(rejections)
        result.errors = rejections + result.errors

        duration = time.time() - start_time
        logger.info(
            'Weekend Matrix Commit completed',
            extra={
                'duration_seconds': round(duration, 2),
                'created': result.counts.created,
                'updated': result.counts.updated,
                'skipped': result.counts.skipped,
                'failed': result.counts.failed,
                'removed': result.removed
            }
        )
        return _response(200, result.to_dict())

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Weekend Matrix Commit failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _response(500, {
            'error': 'Commit failed',
            'detail': str(e),
            'error_type': type(e).__name__
        })


def image_scrape_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Talent image scrape function.

    Args:
        event: API Gateway proxy event with body {"names": [...]}
        context: Lambda context object

    Returns:
        Proxy response; the 200 body is {success, images: [{name, imageUrl}]}
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))

    method = _method(event)
    if method == 'OPTIONS':
        return _response(200)

    try:
        if method != 'POST':
            return _response(405, {'error': 'Method not allowed'})

        try:
            body = _json_body(event)
        except ValueError:
            body = None
        names = body.get('names') if isinstance(body, dict) else None
        if not isinstance(names, list) or not names:
            return _response(400, {'error': 'names array required'})

        scraper = WikiImageScraper(timeout=timeout_seconds)
        images = []
        for name in names:
            try:
                image_url = scraper.find_best_image(name)
            except Exception as e:
                logger.warning(f"Image lookup failed for '{name}': {e}")
                continue
            if image_url:
                images.append({'name': name, 'imageUrl': image_url})

        logger.info(f"Found images for {len(images)} of {len(names)} names")
        return _response(200, {'success': True, 'images': images})

    except Exception as e:
        logger.error(f"image-scrape error: {e}", exc_info=True)
        return _response(500, {'success': False, 'error': str(e)})
