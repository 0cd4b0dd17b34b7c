"""
Entry point for ``python -m artifact_sync``.
"""

from .cli import main

if __name__ == "__main__":
    main()
