"""Allow ``python -m grindperl``."""
from .cli import main

raise SystemExit(main())
