"""Allow running the tool with ``python -m fxp``."""

import sys

from fxp.main import main

if __name__ == "__main__":
    sys.exit(main())
