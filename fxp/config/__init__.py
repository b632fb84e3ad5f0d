"""Configuration module for the FXP transfer tool.

This module handles run configuration and credentials:
- SettingsManager: JSON configuration file loading
- TransferSettings / ServerSettings: Configuration dataclasses
- CredentialManager: Secure password storage via keyring
- Paths: Default file locations
"""
