"""Allow ``python -m usb_sentinel`` to launch the command-line watcher."""

from __future__ import annotations

import sys


def main() -> None:
    from usb_sentinel import run
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
