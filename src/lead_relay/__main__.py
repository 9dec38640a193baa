"""Allow ``python -m lead_relay``."""

import sys

from .cli import main

sys.exit(main())
