"""Allow ``python -m heapwatch``."""

import sys

from .cli import main

sys.exit(main())
