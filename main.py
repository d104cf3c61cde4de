"""Entry point for the log viewer."""

import sys

from log_viewer.cli import main

if __name__ == "__main__":
    sys.exit(main())
