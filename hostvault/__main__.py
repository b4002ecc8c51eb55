"""Allow running as ``python -m hostvault``."""

from hostvault.main import main

main()
