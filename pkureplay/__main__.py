"""
Package entry point.

Allows running the application via:

    python -m pkureplay

This simply forwards execution to pkureplay.cli.main().
"""

from pkureplay.cli import main

if __name__ == "__main__":
    main()
