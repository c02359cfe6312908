"""Custom exception hierarchy for the tsim package."""


class TsimError(Exception):
    """Base exception for all tsim errors."""


class ConfigurationError(TsimError):
    """Missing or invalid configuration."""


class SignatureStoreError(TsimError):
    """Signature artifacts directory cannot be read."""

    def __init__(self, message: str, path: str) -> None:
        self.path = path
        super().__init__(f"{message}: {path}")
