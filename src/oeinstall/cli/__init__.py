"""
Command-line interface for the OpenEyes installer.

Entry point: ``oe-install`` → :data:`oeinstall.cli.app.app`.
"""
