"""Allow ``python -m commonupdater``."""

from commonupdater.cli import main

main()
