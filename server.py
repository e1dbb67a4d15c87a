#!/usr/bin/env python3

import hmac
import json
import logging
import time
from functools import wraps

from bottle import Bottle, BaseRequest, HTTPResponse, Response, request, response

import settings
from product_images.errors import GenerationError, StorageError, ValidationError
from product_images.s3_client import S3Client
from product_images.s3_config import S3Config
from product_images.upload_orchestrator import UploadOrchestrator
from product_images.uploads import ImageUploadService
from product_images.variant_generator import VariantGenerator

app = application = Bottle()

level = logging.getLevelName(settings.LOG_LEVEL)
logging.basicConfig(level=level, format='%(asctime)s [%(levelname)s] %(message)s')
logger = logging.getLogger('product_images.server')

# Multipart overhead on top of the largest accepted image
BaseRequest.MEMFILE_MAX = settings.MAX_UPLOAD_BYTES + 1024 * 1024

_upload_service = None


def get_upload_service():
    """Build the upload service on first use."""
    global _upload_service
    if _upload_service is None:
        config = S3Config.from_env()
        errors = config.validate()
        if errors:
            raise StorageError("S3 configuration invalid: " + "; ".join(errors))
        storage = S3Client(config, logger)
        _upload_service = ImageUploadService(
            storage=storage,
            generator=VariantGenerator(logger=logger),
            orchestrator=UploadOrchestrator(
                storage,
                max_workers=settings.UPLOAD_WORKERS,
                put_timeout=settings.PUT_TIMEOUT,
                late_put_timeout=config.read_timeout,
                logger=logger
            ),
            folder=settings.UPLOAD_FOLDER,
            max_bytes=settings.MAX_UPLOAD_BYTES,
            logger=logger
        )
    return _upload_service


def log(msg):
    logger.debug(msg)


def get_timestamp():
    """Current unix time in whole seconds."""
    return int(time.time())


class TokenException(Exception):
    """Signed request token missing, expired or forged."""
    pass


def generate_token(timestamp, signed_value):
    """
    Sign a value for the given moment.

    Returns ``{hmac-md5 hex}:{timestamp}``; the HMAC covers the timestamp
    followed by the signed value (upload file name or image path).
    """
    stamp = str(timestamp)
    digest = hmac.new(
        settings.KEY.encode(),
        (stamp + (signed_value or '')).encode(),
        digestmod='md5'
    ).hexdigest()
    return f"{digest}:{stamp}"


def validate_token(token, signed_value):
    """
    Check a client token against signed_value.

    Validation is disabled when no KEY is configured. Otherwise the token
    must be well formed, within TIME_TOLERANCE seconds of server time and
    match generate_token for the same timestamp.
    """
    if settings.KEY is None:
        return
    if not token:
        raise TokenException("token is missing")

    _, sep, stamp = token.partition(':')
    if not sep or not stamp.isdigit():
        raise TokenException("token is malformed")
    timestamp = int(stamp)

    if settings.TIME_TOLERANCE is not None:
        now = get_timestamp()
        if abs(now - timestamp) >= settings.TIME_TOLERANCE:
            raise TokenException(f"token timestamp {timestamp} out of range (server time {now})")

    if not hmac.compare_digest(token, generate_token(timestamp, signed_value)):
        raise TokenException("token is invalid")
    log(f"Accepted token for {signed_value}")


def include_timestamp(func):
    """Add an X-Timestamp header so clients can sync their clocks before signing."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        result = func(*args, **kwargs)
        target = result if isinstance(result, Response) else response
        target.set_header('X-Timestamp', str(get_timestamp()))
        return result
    return wrapper


def require_token(signed_param):
    """
    Reject the request with 403 unless its token signs the named parameter.

    Tokens and signed values are read from the form body for POST and from
    the query string otherwise.
    """
    def decorator(func):
        @include_timestamp
        @wraps(func)
        def wrapper(*args, **kwargs):
            params = request.forms if request.method == 'POST' else request.query
            try:
                validate_token(params.get('token'), params.get(signed_param))
            except TokenException as e:
                log(f"Token rejected: {e}")
                return json_response({'error': f"Invalid token: {e}"}, 403)
            return func(*args, **kwargs)
        return wrapper
    return decorator


def allow_cross_origin(func):
    """Send Access-Control-Allow-Origin: * on the response, errors included."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            result = func(*args, **kwargs)
        except HTTPResponse as http_response:
            http_response.set_header('Access-Control-Allow-Origin', '*')
            raise
        target = result if isinstance(result, Response) else response
        target.set_header('Access-Control-Allow-Origin', '*')
        return result
    return wrapper


def json_response(payload, status=200):
    response.content_type = 'application/json; charset=utf-8'
    response.status = status
    return json.dumps(payload)


def error_response(error):
    """Map a pipeline error onto an HTTP status."""
    if isinstance(error, ValidationError):
        status = 400
    elif isinstance(error, GenerationError):
        status = 422
    else:
        status = 502
    logger.warning(f"Request failed with {status}: {error}")
    return json_response({'error': str(error)}, status)


@app.route('/upload', method='OPTIONS')
@allow_cross_origin
def upload_options():
    response.set_header('Access-Control-Allow-Methods', 'POST, DELETE, OPTIONS')
    response.content_type = "text/plain; charset=utf-8"
    return ''


@app.route('/upload', method='POST')
@allow_cross_origin
@require_token('filename')
def upload():
    """Accept an image, store all of its variants and return the canonical URL."""
    start_save = time.time()
    upload_file = request.files.get('file')
    if upload_file is None:
        return json_response({'error': 'No file was sent'}, 400)

    data = upload_file.file.read()
    content_type = upload_file.content_type
    filename = request.forms.filename or upload_file.raw_filename

    try:
        result = get_upload_service().upload(data, content_type, filename)
    except (ValidationError, GenerationError, StorageError) as e:
        return error_response(e)

    log(f"Upload complete: {filename} -> {result['path']} ({time.time() - start_save:.2f}s)")
    return json_response(result)


@app.route('/upload', method='DELETE')
@allow_cross_origin
@require_token('path')
def delete_upload():
    """Remove every variant of the image named by the path query parameter."""
    path = request.query.path
    if not path:
        return json_response({'error': 'Image path not provided'}, 400)

    try:
        removed = get_upload_service().delete(path)
    except (ValidationError, StorageError) as e:
        return error_response(e)

    return json_response({'success': True, 'removed': removed})


@app.route('/')
def main_page():
    log("Hit root")
    return 'Product image server'


if __name__ == '__main__':
    from bottle import run
    log("running server...")

    run(app=application,
        host=settings.HOST,
        port=settings.PORT,
        server=settings.SERVER,
        debug=settings.DEBUG_APP,
        reloader=settings.DEBUG_APP
    )

    log("Exiting.")
