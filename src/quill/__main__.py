# =============================================================================
# Quill Entry Point for `python -m quill`
# =============================================================================
# This module allows Quill to be run as a Python module:
#
#   python -m quill
#
# This is equivalent to running the 'quill' command after installation.
# =============================================================================

import sys

from quill.app import main

if __name__ == "__main__":
    sys.exit(main())
