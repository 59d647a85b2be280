"""Allow ``python -m routemcp``."""

from routemcp.cli import main

if __name__ == "__main__":
    main()
