"""
`python -m mac_packager` entrypoint.

The installed console script `mac-packager` calls the same `mac_packager.cli:main`.
"""

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
