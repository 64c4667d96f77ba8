"""Protocol constants shared by the negotiator, the engine and the configuration."""

DEFAULT_CHUNK_SIZE = 4 << 20  # 4 MB
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 10.0
DEFAULT_TIMEOUT = 30.0

REQUEST_TYPE_INIT = "init"
REQUEST_TYPE_APPEND = "APPEND"

HEADER_REQUEST_TYPE = "Request-Type"
HEADER_ID = "ID"
HEADER_OFFSET = "Offset"
HEADER_MAX_REQUEST_SIZE = "Max-Request-Size"
HEADER_FILENAME = "Filename"
HEADER_FILETYPE = "Filetype"

STATUS_OK = 200
STATUS_CREATED = 201
