from __future__ import annotations

from hookguard.cli.entrypoint import main

if __name__ == "__main__":
    main()
