"""
Centralized path configuration for simple-text
Ensures all modules use consistent, volume-mounted paths
"""

import os

# Base paths - the data directory holds logs, the settings file and key material
DATA_DIR = os.getenv('SIMPLE_TEXT_DATA_DIR', '/app/data')

# Sync settings file (remote url, mirror location, branch, ...)
CONFIG_FILE = os.path.join(DATA_DIR, 'conf.yaml')

# Fernet key for the in-process crypto backend
ENCRYPTION_KEY_FILE = os.path.join(DATA_DIR, 'encryption.key')

# Log directory
LOG_DIR = os.path.join(DATA_DIR, 'logs')


def ensure_data_dirs():
    """Create data directories if they don't exist"""
    for directory in [DATA_DIR, LOG_DIR]:
        os.makedirs(directory, exist_ok=True)
        try:
            os.chmod(directory, 0o700)
        except OSError:
            pass  # May not have permission in some environments


# For development/testing outside Docker
if 'SIMPLE_TEXT_DATA_DIR' not in os.environ and not os.path.exists('/app'):
    # Running locally, use relative paths
    DATA_DIR = './data'
    CONFIG_FILE = os.path.join(DATA_DIR, 'conf.yaml')
    ENCRYPTION_KEY_FILE = os.path.join(DATA_DIR, 'encryption.key')
    LOG_DIR = os.path.join(DATA_DIR, 'logs')
