"""Resource limits for SQL expression rendering."""

DEFAULT_MAX_RENDER_DEPTH = 100
"""Maximum nesting depth of a rendered expression tree (CWE-674 prevention)."""

DEFAULT_MAX_CEL_DEPTH = 100
"""Maximum CEL parse tree visit depth."""

DEFAULT_MAX_SQL_OUTPUT_LENGTH = 1_000_000
"""Maximum generated SQL string length."""

