"""
Entry point for running remoteconf as a module.

Usage:
    python -m remoteconf [command] [options]
"""

from remoteconf.cli import main

if __name__ == "__main__":
    main()
