"""
Use cases - read models and operator glue on top of the runtime.

Each module translates runtime values into the wire dictionaries served by
the HTTP API and printed by the CLI.
"""
