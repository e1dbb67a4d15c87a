import os

# Shared secret for signing upload/delete tokens. None disables validation.
KEY = os.getenv('UPLOAD_KEY')

# Max seconds between token timestamp and server time
TIME_TOLERANCE = int(os.getenv('TIME_TOLERANCE', '600'))

MAX_UPLOAD_BYTES = int(os.getenv('MAX_UPLOAD_BYTES', str(10 * 1024 * 1024)))

# Folder every new canonical path is minted under
UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', 'produtos')

# Variant fan-out
UPLOAD_WORKERS = int(os.getenv('UPLOAD_WORKERS', '5'))
PUT_TIMEOUT = float(os.getenv('PUT_TIMEOUT', '30'))

HOST = os.getenv('HOST', '0.0.0.0')
PORT = int(os.getenv('PORT', '8080'))
SERVER = os.getenv('SERVER', 'wsgiref')

DEBUG_APP = os.getenv('DEBUG_APP', 'false').lower() in ('1', 'true', 'yes')
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
