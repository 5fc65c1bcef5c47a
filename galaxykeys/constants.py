"""
galaxykeys.constants
--------------------
Namespace defaults and fixed limits shared across the provisioning engine.
"""

# Namespace layout
POD_MIN = 0
POD_MAX = 255
POD_PREFIX = "pod"
POD_WIDTH = 3
ROOT_POD = 0

DEFAULT_ROOT_ROLES = ("Administrator", "PAT", "Robot")
EXTENDED_ROOT_ROLES = ("Administrator", "PAT", "Robot", "Jumphost")
DEFAULT_POD_ROLE = "Robot"
DEFAULT_POD_COUNT = POD_MAX

# Keypair generation
DEFAULT_KEY_ALGORITHM = "rsa"
DEFAULT_KEY_BITS = 4096
MIN_RSA_BITS = 2048
MAX_RSA_BITS = 8192
MAX_GENERATION_ATTEMPTS = 3

# Persisted layout
PRIVATE_SUFFIX = "PRIVATE"
PUBLIC_SUFFIX = "PUBLIC"
ARTIFACT_EXT = ".pub"
ENTRY_EXT = ".enc"
ROOT_ID_FILE = ".root-id"
ROOT_KEY_FILE = ".root-key"
SEALED_VERSION = 1
SEALED_ALG = "x25519-hkdf-sha256-aes256gcm"
HKDF_INFO = b"galaxykeys-v1"

# Permissions (umask 077 equivalent)
DIR_MODE = 0o700
FILE_MODE = 0o600

# Completion codes
EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_PLANNING = 2
