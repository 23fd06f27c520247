"""
cool-kit - deployment automation for a self-hosted platform.

Provisions servers on several backends, installs the platform, streams
step progress to a terminal view and tears resources down again.
"""

__version__ = "0.1.0"
