"""Constants for dirmirror."""

# Configuration file looked up in the working directory
CONFIG_FILE = ".dirmirror.yaml"

# Destination paths left alone unless the caller says otherwise
DEFAULT_EXCLUDED_DESTINATION_PATHS = ["node_modules", ".git"]

# Verified removal waits this long (seconds) before its single re-check
REMOVAL_RETRY_DELAY = 0.1

# Access error codes (errno names)
ACCESS_ERROR_NO_SUCH_FILE_OR_DIRECTORY = "ENOENT"
ACCESS_ERROR_OPERATION_NOT_PERMITTED = "EPERM"
ACCESS_ERROR_PERMISSION_DENIED = "EACCES"

# Codes reported for a path stuck in a pending-delete state (EACCES on Windows)
ACCESS_ERRORS_PENDING_DELETE = (ACCESS_ERROR_OPERATION_NOT_PERMITTED, ACCESS_ERROR_PERMISSION_DENIED)

# Version
DIRMIRROR_VERSION = "0.1.0"
