"""FTP and FXP operations for the FXP transfer tool.

This module handles all protocol-level functionality:
- FTPConnectionManager: Connection management with state tracking
- ControlChannel: Command/response primitives over one control connection
- FXPTransfer: PASV/PORT/STOR/RETR orchestration for a single file
- CompletionMonitor: Dual-channel wait for transfer completion
- DirectoryReplicator: Depth-first replication of a source directory tree
- Exceptions: FTP and FXP error types
"""
