"""Exceptions raised at the renderer's configuration boundary."""


class InvalidConfiguration(ValueError):
    """A caller supplied a configuration value outside its contract.

    Raised by setters before any state is modified, so the renderer keeps
    its previous, valid configuration.
    """
