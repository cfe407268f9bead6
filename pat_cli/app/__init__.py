"""
PAT CLI application package.

- app.main: argparse entry point (``pat add``, ``deploy test``).
- app.config_store: YAML settings file holding the PAT and Logto client.
- app.adapters: HTTP client for the Logto token endpoint.

Exchange errors are shown to the operator verbatim (status code and raw
body); this is an operator tool, not a multi-tenant boundary.
"""
