"""Allow running Patchway as ``python -m patchway``."""

from patchway.cli.app import main

if __name__ == "__main__":
    main()
