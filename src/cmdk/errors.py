"""Error taxonomy shared by the library modules and the CLI."""


class CmdkError(Exception):
    """Base class for errors shown to the user."""


class BackendUnavailable(CmdkError):
    """No usable backend is configured or installed."""


class BackendInvocationFailed(CmdkError):
    """The backend exited non-zero, timed out, or could not be talked to."""


class TargetUnreachable(CmdkError):
    """A literal send or key press to the target surface failed."""


class ClipboardUnavailable(CmdkError):
    """Every configured clipboard mechanism failed."""


class StorageFailure(CmdkError):
    """Reading or writing persisted state failed."""
