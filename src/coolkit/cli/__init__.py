"""
CLI layer for cool-kit.

Terminal transport only: argument parsing, confirmations and coloured
output. Deployment and teardown logic lives in ``coolkit.deploy`` and
``coolkit.providers``.

Entry point::

    cool-kit --help
"""

from coolkit.cli.app import app

__all__ = ["app"]
