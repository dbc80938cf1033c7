"""Allow ``python -m taskbook``."""

from taskbook.cli import main

if __name__ == "__main__":
    main()
