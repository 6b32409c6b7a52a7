"""SSH session lifecycle: connect, liveness probe and ordered teardown."""

import logging
import select
import socket
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

import paramiko
from paramiko import SFTPClient, Transport

from ..config.models import AUTH_METHOD_KEY, Credentials
from .errors import (
    AuthError,
    HandshakeError,
    SessionClosedError,
    SubsessionInitError,
    TransportError,
)


logger = logging.getLogger(__name__)

DEFAULT_PORT = 22
DEFAULT_TIMEOUT = 30.0
DEFAULT_DISCONNECT_REASON = "Normal Shutdown"

# Errors paramiko surfaces while talking to a peer
_CHANNEL_ERRORS = (paramiko.SSHException, OSError, EOFError)


class SessionState(Enum):
    """Lifecycle states of a Session."""
    CONNECTING = "connecting"
    HANDSHAKE_DONE = "handshake_done"
    AUTHENTICATED = "authenticated"
    SUBSESSION_READY = "subsession_ready"
    CLOSED = "closed"


@dataclass
class Session:
    """An SSH connection and its SFTP subsession.

    Owned by the caller; hand it to every operation and close it exactly once
    through ``SessionManager.close``.
    """
    hostname: str
    port: int
    username: str
    sock: Optional[socket.socket] = None
    transport: Optional[Transport] = None
    sftp: Optional[SFTPClient] = None
    state: SessionState = SessionState.CONNECTING

    def require_sftp(self) -> SFTPClient:
        """Return the SFTP subsession, or raise if the session cannot serve requests."""
        if self.state is not SessionState.SUBSESSION_READY or self.sftp is None:
            raise SessionClosedError(
                f"Session to {self.hostname}:{self.port} is not usable (state: {self.state.value})"
            )
        return self.sftp


class SessionManager:
    """Opens, probes and closes SFTP sessions.

    The manager holds no session state of its own; every call takes the
    Session it operates on.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, known_hosts_path: Optional[str] = None):
        """
        Initialize the session manager.

        Args:
            timeout: Seconds allowed for the TCP connect, banner, handshake and auth steps
            known_hosts_path: Optional known_hosts file the server host key must match
        """
        self.timeout = timeout
        self.known_hosts_path = known_hosts_path

    @contextmanager
    def open_session(self, hostname: str, port: int, credentials: Credentials) -> Iterator[Session]:
        """
        Context manager for sessions with guaranteed cleanup.

        Yields:
            Session: Connected session with a ready SFTP subsession

        Raises:
            ConnectError: If any connect stage fails
        """
        session = self.connect(hostname, port, credentials)
        try:
            yield session
        finally:
            self.close(session)

    def connect(self, hostname: str, port: int, credentials: Credentials) -> Session:
        """
        Connect, handshake, authenticate and open the SFTP subsession.

        Args:
            hostname: Remote host name or address
            port: Remote SSH port
            credentials: Username plus exactly one of key file or password

        Returns:
            Session: Session in the SUBSESSION_READY state

        Raises:
            TransportError: If the TCP connection cannot be opened
            HandshakeError: If the SSH handshake or host key check fails
            AuthError: If authentication fails
            SubsessionInitError: If the SFTP subsession cannot be opened
        """
        session = Session(hostname=hostname, port=port, username=credentials.username)
        logger.info(f"Connecting to {hostname}:{port} as {credentials.username}")

        try:
            session.sock = socket.create_connection((hostname, port), timeout=self.timeout)
        except OSError as e:
            raise TransportError(f"Failed to connect to {hostname}:{port}: {e}") from e

        try:
            self._handshake(session)
            self._authenticate(session, credentials)
            self._open_subsession(session)
        except BaseException:
            self._release(session)
            raise

        logger.info(f"SFTP session ready on {hostname}:{port} as {credentials.username}")
        return session

    def _handshake(self, session: Session) -> None:
        """Run the SSH key exchange and optionally verify the server host key."""
        try:
            transport = Transport(session.sock)
            session.transport = transport
            transport.banner_timeout = self.timeout
            transport.handshake_timeout = self.timeout
            transport.auth_timeout = self.timeout
            transport.start_client(timeout=self.timeout)
        except _CHANNEL_ERRORS as e:
            raise HandshakeError(f"SSH handshake with {session.hostname}:{session.port} failed: {e}") from e

        if self.known_hosts_path:
            self._verify_host_key(session)

        session.state = SessionState.HANDSHAKE_DONE
        logger.debug(f"Handshake completed with {session.hostname}:{session.port}")

    def _verify_host_key(self, session: Session) -> None:
        host_keys = paramiko.HostKeys()
        try:
            host_keys.load(self.known_hosts_path)
        except OSError as e:
            raise HandshakeError(f"Unable to read known hosts file {self.known_hosts_path}: {e}") from e

        if session.port == DEFAULT_PORT:
            lookup_name = session.hostname
        else:
            lookup_name = f"[{session.hostname}]:{session.port}"

        server_key = session.transport.get_remote_server_key()
        if not host_keys.check(lookup_name, server_key):
            raise HandshakeError(
                f"Host key for {lookup_name} ({server_key.get_name()}) does not match {self.known_hosts_path}"
            )

    def _authenticate(self, session: Session, credentials: Credentials) -> None:
        """Authenticate with exactly one of a private key file or a password."""
        method = credentials.auth_method
        if method is None:
            raise AuthError("Exactly one of a private key file or a password is required")

        transport = session.transport
        try:
            if method == AUTH_METHOD_KEY:
                pkey = self._load_private_key(credentials)
                transport.auth_publickey(credentials.username, pkey)
            else:
                transport.auth_password(credentials.username, credentials.password)
        except AuthError:
            raise
        except _CHANNEL_ERRORS as e:
            raise AuthError(
                f"Authentication with {method} failed for {credentials.username}@{session.hostname}: {e}"
            ) from e

        if not transport.is_authenticated():
            raise AuthError(
                f"Authentication with {method} for {credentials.username}@{session.hostname} "
                f"requires further methods"
            )

        session.state = SessionState.AUTHENTICATED
        logger.debug(f"Authenticated {credentials.username}@{session.hostname} with {method}")

    def _load_private_key(self, credentials: Credentials) -> paramiko.PKey:
        try:
            return paramiko.PKey.from_path(credentials.private_key_path, passphrase=credentials.passphrase)
        except (paramiko.SSHException, OSError, ValueError) as e:
            raise AuthError(f"Unable to load private key {credentials.private_key_path}: {e}") from e

    def _open_subsession(self, session: Session) -> None:
        try:
            sftp = SFTPClient.from_transport(session.transport)
        except _CHANNEL_ERRORS as e:
            raise SubsessionInitError(f"Unable to init SFTP session on {session.hostname}: {e}") from e

        if sftp is None:
            raise SubsessionInitError(f"Unable to init SFTP session on {session.hostname}: channel refused")

        session.sftp = sftp
        session.state = SessionState.SUBSESSION_READY

    def is_alive(self, session: Session) -> bool:
        """
        Probe the transport without any SSH or SFTP traffic.

        Paramiko's reader thread keeps the inbound direction of the socket
        pending for the whole life of the transport, so inbound is the direction
        polled, with a zero timeout. The probe never blocks.

        Returns:
            False once the session is closed or the peer has gone away, True otherwise
        """
        if session.state is SessionState.CLOSED or session.transport is None:
            return False

        if not session.transport.is_active():
            return False

        sock = session.sock
        if sock is None or sock.fileno() < 0:
            return False

        try:
            readable, _, errored = select.select([sock], [], [sock], 0)
        except (OSError, ValueError):
            return False

        if errored:
            return False

        if readable:
            # Readable with nothing to peek means the peer closed the stream
            try:
                data = sock.recv(1, socket.MSG_PEEK)
            except (BlockingIOError, socket.timeout):
                return True
            except OSError:
                return False
            if not data:
                return False

        return True

    def close(self, session: Session, reason: str = DEFAULT_DISCONNECT_REASON) -> None:
        """
        Close the SFTP subsession, disconnect the transport, then release the socket.

        Calling close on an already closed session does nothing.

        Args:
            session: Session to close
            reason: Disconnect reason recorded in the log
        """
        if session.state is SessionState.CLOSED:
            logger.debug(f"Session to {session.hostname}:{session.port} already closed")
            return

        logger.info(f"Disconnecting from {session.hostname}:{session.port}: {reason}")
        self._release(session)

    def _release(self, session: Session) -> None:
        """Release whatever the session holds, subsession first, socket last."""
        if session.sftp is not None:
            try:
                session.sftp.close()
            except Exception as e:
                logger.warning(f"Error closing SFTP subsession: {e}")
            finally:
                session.sftp = None

        if session.transport is not None:
            try:
                session.transport.close()
            except Exception as e:
                logger.warning(f"Error closing SSH transport: {e}")
            finally:
                session.transport = None

        if session.sock is not None:
            try:
                session.sock.close()
            except OSError as e:
                logger.warning(f"Error closing socket: {e}")
            finally:
                session.sock = None

        session.state = SessionState.CLOSED
