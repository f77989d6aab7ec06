"""Exception hierarchy shared by providers, the engine and the outer surfaces."""


class MrwError(RuntimeError):
    """Base class for every error raised on purpose by mrw."""


class GatewayError(MrwError):
    """A remote platform call failed (transport error or non-2xx response)."""


class AuthError(GatewayError):
    """The remote platform rejected the token. Fatal under every fetch policy."""


class NotFoundError(GatewayError):
    pass


class BatchCancelled(MrwError):
    """A fan-out batch was cancelled before all of its items ran."""


class SuggestionError(MrwError):
    """Business-rule failure of the assignment suggester, not an I/O failure."""


class NoTeamMembersError(SuggestionError):
    def __init__(self) -> None:
        super().__init__("no team members available")


class NoAvailableTeamMembersError(SuggestionError):
    def __init__(self) -> None:
        super().__init__("no available team members")


class GitContextError(MrwError):
    """The working directory is not a git clone with a usable origin and branch."""
