"""Allow ``python -m tidysave``."""

from .app import main

raise SystemExit(main())
