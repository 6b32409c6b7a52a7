"""Configuration data models for the transmit SFTP client."""

from dataclasses import dataclass
from typing import Optional


AUTH_METHOD_KEY = "key"
AUTH_METHOD_PASSWORD = "password"
AUTH_METHODS = (AUTH_METHOD_KEY, AUTH_METHOD_PASSWORD)


@dataclass
class Credentials:
    """Authenticated identity for an SSH session.

    Exactly one of ``private_key_path`` or ``password`` must be set.
    """
    username: str
    private_key_path: Optional[str] = None
    passphrase: Optional[str] = None
    password: Optional[str] = None

    @property
    def auth_method(self) -> Optional[str]:
        """Return ``"key"`` or ``"password"``, or None when the choice is ambiguous."""
        has_key = bool(self.private_key_path)
        has_password = self.password is not None
        if has_key and not has_password:
            return AUTH_METHOD_KEY
        if has_password and not has_key:
            return AUTH_METHOD_PASSWORD
        return None


@dataclass
class SFTPConfig:
    """Configuration for the remote SFTP server connection."""
    host: Optional[str] = None
    port: int = 22
    username: Optional[str] = None
    auth_method: Optional[str] = None
    private_key_path: Optional[str] = None
    passphrase: Optional[str] = None
    password: Optional[str] = None
    known_hosts_path: Optional[str] = None
    connect_timeout: float = 30.0

    def credentials(self) -> Credentials:
        """Build credentials for the configured authentication method."""
        if self.auth_method == AUTH_METHOD_PASSWORD:
            return Credentials(username=self.username or "", password=self.password)
        return Credentials(
            username=self.username or "",
            private_key_path=self.private_key_path,
            passphrase=self.passphrase,
        )


@dataclass
class TransferConfig:
    """Configuration for file transfers."""
    chunk_size: int = 32768


@dataclass
class LoggingConfig:
    """Configuration for log output.

    Set ``error_log_retention_days`` to 0 to disable pruning of the error log.
    """
    log_dir: str = "./logs"
    console_level: str = "WARNING"
    file_level: str = "DEBUG"
    error_log_retention_days: int = 0  # 0 = disabled
