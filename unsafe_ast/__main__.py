"""Allow ``python -m unsafe_ast``."""

from unsafe_ast.main import main

raise SystemExit(main())
