"""
Custom exception hierarchy for devsetup.
"""

class DevSetupError(Exception):
    """Base exception for all devsetup errors."""
    pass

class PreconditionMissing(DevSetupError):
    """A prerequisite unit or tool has not been run/installed yet."""
    pass

class ModuleSelectionError(DevSetupError):
    pass

class CommandError(DevSetupError):
    pass

class BackupError(DevSetupError):
    pass

class BackupWriteFailed(BackupError):
    """Original state could not be protected; the mutation must not proceed."""
    pass

class SessionNotFound(BackupError):
    pass

class SessionLocked(BackupError):
    pass

class PathTraversalError(BackupError):
    pass

class DocumentError(DevSetupError):
    pass

class DocumentNotFound(DocumentError):
    pass

class DocumentReadFailed(DocumentError):
    pass

class DocumentWriteFailed(DocumentError):
    pass

class StructureError(DocumentError):
    """A document does not have the shape a patch expects."""
    pass

class AnchorNotFound(StructureError):
    pass

class UnterminatedBlock(StructureError):
    pass

class ConfigError(DevSetupError):
    pass

class SettingsValidationError(ConfigError):
    pass
