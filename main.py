"""Cloud Functions entry point wrapper.

This file serves as the entry point for Cloud Functions deployment,
properly setting up the Python path to allow imports from src/.
"""

import sys
from pathlib import Path

# Add project root to Python path for proper imports
PROJECT_ROOT = Path(__file__).parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Re-export the Cloud Function entry points
from src.functions.converter.main import (  # noqa: E402
    convert_sheet,
    health_check,
)

__all__ = ["convert_sheet", "health_check"]
