"""Constants for the ctrlX CORE integration.

This module contains the constants used throughout the integration,
including REST endpoints, configuration keys and error identifiers.
"""

from datetime import timedelta

DOMAIN = "ctrlx_core"

AUTH_TOKEN_PATH = "/identity-manager/api/v1/auth/token"
DATALAYER_NODES_PATH = "/automation/api/v2/nodes"

# Renew the token this long before the device would reject it.
TOKEN_RENEWAL_SKEW = timedelta(seconds=30)

DEFAULT_TIMEOUT = -1  # milliseconds, -1 keeps the client default
DEFAULT_CLIENT_TIMEOUT = 10.0  # seconds
DEFAULT_POLL_INTERVAL = 30
DEFAULT_AUTO_RECONNECT = True
DEFAULT_VERIFY_SSL = False

CONF_AUTO_RECONNECT = "auto_reconnect"
CONF_PATHS = "paths"

ERROR_INVALID_AUTH = "invalid_auth"
ERROR_CANNOT_CONNECT = "cannot_connect"
ERROR_TIMEOUT = "timeout_error"
ERROR_API_ERROR = "api_error"
ERROR_INVALID_RESPONSE = "invalid_response"
ERROR_UNKNOWN = "unknown_error"

SERVICE_DATALAYER_REQUEST = "datalayer_request"
ATTR_CONFIG_ENTRY_ID = "config_entry_id"
ATTR_METHOD = "method"
ATTR_PATH = "path"
ATTR_PAYLOAD = "payload"
ATTR_TYPE = "type"

METHOD_READ = "read"
METHOD_READ_WITH_ARG = "read_with_arg"
METHOD_WRITE = "write"
METHOD_CREATE = "create"
METHOD_DELETE = "delete"
METHOD_METADATA = "metadata"
METHOD_BROWSE = "browse"
REQUEST_METHODS = [
    METHOD_READ,
    METHOD_READ_WITH_ARG,
    METHOD_WRITE,
    METHOD_CREATE,
    METHOD_DELETE,
    METHOD_METADATA,
    METHOD_BROWSE,
]
