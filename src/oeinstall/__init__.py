"""
oeinstall - OpenEyes demo installer.

Pulls the pre-built OpenEyes and MariaDB images, brings the stack up with
``docker compose``, seeds the sample database and checks that the
application answers.

- oeinstall.core: errors and structured logging
- oeinstall.deploy: configuration, compose/mysql wrappers, install workflow
- oeinstall.cli: the ``oe-install`` command
"""

__version__ = "0.1.0"
