"""
Errors raised by the supervision engine.

Every control operation reports its failure back to the client as the
exception's message, so messages are short and meant for humans.
"""


class SupervisorError(Exception):
    """Base class for all control-operation failures."""


class NotFoundError(SupervisorError):
    """A unit file, a registry entry or an enablement link does not exist."""


class ConfigInvalidError(SupervisorError):
    """A unit file could not be parsed or its ExecStart is unusable."""


class LaunchFailureError(SupervisorError):
    """The service executable could not be spawned."""


class SignalFailureError(SupervisorError):
    """A termination or kill signal could not be delivered."""


class ProtocolMalformedError(SupervisorError):
    """A control message did not have the `operation:service` shape."""
