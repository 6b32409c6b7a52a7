"""transmit: SFTP upload and recursive remove over a single SSH session."""

__version__ = "0.1.0"
