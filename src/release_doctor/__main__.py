"""Module entrypoint.

Allows:
    python -m release_doctor run
"""

from __future__ import annotations

from release_doctor.cli import main

if __name__ == "__main__":
    main()
