"""Command-line entry point for the FXP transfer tool.

Loads the configuration, connects to both servers and transfers every
configured file or directory from the source to the destination.
"""

import argparse
import getpass
import json
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config.credentials import CredentialManager
from .config.paths import DEFAULT_CONFIG_PATH, get_log_file_path
from .config.settings import ServerSettings, SettingsError, SettingsManager, TransferSettings
from .ftp.connection import FTPConnectionManager
from .ftp.exceptions import FTPError
from .ftp.replicator import DirectoryReplicator
from .ftp.transfer import FXPTransfer, TransferResult, get_batch_summary
from .utils.logging import get_prefixed_logger, setup_logging

# --log-file given without a path
USER_LOG_FILE = ""


class Application:
    """
    Main application controller.

    Owns the two server connections for the duration of a run and
    feeds every configured entry through the transfer orchestrator.
    """

    def __init__(
        self,
        settings: TransferSettings,
        credential_manager: Optional[CredentialManager] = None
    ):
        """
        Initialize the application.

        Args:
            settings: Validated run configuration
            credential_manager: Keyring access for passwords missing from the config
        """
        self._settings = settings
        self._credential_manager = credential_manager or CredentialManager()
        self._logger = get_prefixed_logger("APP")

        self._source = FTPConnectionManager("source")
        self._destination = FTPConnectionManager("destination")

    @property
    def source(self) -> FTPConnectionManager:
        return self._source

    @property
    def destination(self) -> FTPConnectionManager:
        return self._destination

    def _connect(self, manager: FTPConnectionManager, server: ServerSettings, name: str) -> None:
        """Connect and log in to one server."""
        config = server.to_connection_config(name, self._settings.connection_timeout_seconds)
        password = self._credential_manager.resolve_password(
            server.host, server.username, server.password
        )
        self._logger.info(f"connecting to {name}, address={server.address}")
        manager.connect(config, password)

    def connect(self) -> None:
        """
        Connect to the source, then the destination server.

        Raises:
            FTPError: If either connection or login fails
        """
        self._connect(self._source, self._settings.source, "source FTP")
        self._connect(self._destination, self._settings.destination, "dest FTP")

    def transfer_all(self) -> List[TransferResult]:
        """
        Transfer every configured entry.

        Entries ending with "/" are replicated as directories. A failed
        entry does not stop the ones after it.

        Returns:
            One TransferResult per attempted file or unlistable directory
        """
        transfer = FXPTransfer(
            self._source.channel,
            self._destination.channel,
            timeout=self._settings.fxp_transfer_timeout_seconds,
            preliminary_markers=self._settings.preliminary_codes,
            fail_fast_on_read_error=self._settings.fail_fast_on_read_error,
            log=self._logger
        )
        replicator = DirectoryReplicator(transfer, log=self._logger)

        results: List[TransferResult] = []
        for entry in self._settings.files:
            if entry.endswith("/"):
                directory = entry.rstrip("/") or "/"
                results.extend(replicator.replicate(directory))
            else:
                results.append(transfer.transfer_file(entry))
        return results

    def run(self) -> int:
        """
        Run the configured transfers.

        Returns:
            Exit code (0 when every transfer succeeded)
        """
        start_time = time.monotonic()
        try:
            try:
                self.connect()
            except FTPError as e:
                self._logger.error(f"connection failed, error={e}")
                return 1

            results = self.transfer_all()
        finally:
            self._cleanup()

        summary = get_batch_summary(results)
        self._logger.info(
            f"transferred {summary['successful']}/{summary['total']} files, "
            f"failed={summary['failed']}"
        )
        for path, error in summary["failures"]:
            self._logger.error(f"failed: {path}: {error}")
        self._logger.info(f"overall timeTaken={time.monotonic() - start_time:.3f}s")

        return 0 if summary["failed"] == 0 else 1

    def _cleanup(self) -> None:
        """Close both connections."""
        self._source.disconnect()
        self._destination.disconnect()


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="fxp",
        description="Transfer files directly between two FTP servers using FXP."
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="config.json file location (default: %(default)s)"
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Prints this tool version"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        nargs="?",
        const=USER_LOG_FILE,
        default=None,
        help="Also write the log to this file (the per-user log file when no path is given)"
    )
    parser.add_argument(
        "--set-password",
        nargs=2,
        metavar=("HOST", "USERNAME"),
        help="Store a server password in the system keyring and exit"
    )
    return parser


def store_password(host: str, username: str, credential_manager: CredentialManager) -> int:
    """
    Prompt for a password and save it in the keyring.

    Returns:
        Exit code
    """
    password = getpass.getpass(f"Password for {username}@{host}: ")
    if not credential_manager.save_password(host, username, password):
        print(f"error: could not save password for {username}@{host}", file=sys.stderr)
        return 1
    print(f"password saved for {username}@{host}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Application entry point.

    Returns:
        Exit code (0 for success)
    """
    args = build_parser().parse_args(argv)

    if args.version:
        print(f"version: {__version__}")
        return 0

    if args.set_password:
        host, username = args.set_password
        return store_password(host, username, CredentialManager())

    try:
        settings = SettingsManager(args.config).load()
    except SettingsError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    log_file = get_log_file_path() if args.log_file == USER_LOG_FILE else args.log_file
    debug = args.verbose or settings.source.debug or settings.destination.debug
    setup_logging(level=logging.DEBUG if debug else logging.INFO, log_file=log_file)
    get_prefixed_logger("APP").debug(f"loaded config: {json.dumps(settings.to_dict())}")

    try:
        return Application(settings).run()
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
