"""FXP server-to-server transfer tool.

Drives the control channels of two FTP servers so that they exchange
file data directly between themselves.
"""

__version__ = "0.3.0"
