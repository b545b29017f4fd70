"""
Root conftest.py to set up Python path for pytest.

This runs before test collection, ensuring imports work correctly.
"""
import os
import sys
import tempfile

# Add backend directory to Python path FIRST
backend_dir = os.path.dirname(os.path.abspath(__file__))
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

# Keep logs and key files out of the source tree; config.paths reads this at import
os.environ.setdefault('SIMPLE_TEXT_DATA_DIR', tempfile.mkdtemp(prefix='simple-text-test-'))
