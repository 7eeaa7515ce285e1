class RotationError(Exception):
    pass


class KeyInvariantError(RotationError):
    """The user's key set is in a state rotation never produces.

    More than two keys, or a key with a status other than Active/Inactive.
    Needs an operator; nothing is mutated when this is raised.
    """


class ConfigurationError(RotationError):
    pass


class CredentialPushError(RotationError):
    pass


class LocationNotFoundError(CredentialPushError):
    pass


class RotationInProgressError(RotationError):
    pass
