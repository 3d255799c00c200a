"""Allow ``python -m domainproof``."""

from domainproof.cli.main import main

main()
