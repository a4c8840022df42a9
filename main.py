"""regwatch - Docker registry manifest client.

Main entry point; equivalent to the ``regwatch`` console script.

Usage:
  python main.py manifest debian:bullseye-slim
  python main.py check images.yaml
"""

import sys

from regwatch.cli import main

if __name__ == "__main__":
    sys.exit(main())
