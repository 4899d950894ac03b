"""Exception types raised by the search pipeline."""

from __future__ import annotations


class ProteinKnnError(Exception):
    """Base class for all pipeline errors."""


class InitializationError(ProteinKnnError):
    """Scaler artifact or corpus could not be loaded at startup."""


class DegenerateInputError(ProteinKnnError):
    """The sequence cannot be turned into a feature vector (e.g. empty)."""


class ScalingError(ProteinKnnError):
    """The scaler rejected or failed on a feature vector."""


class SearchError(ProteinKnnError):
    """The corpus failed during a scan, or held a malformed vector."""


class SearchTimeoutError(SearchError):
    """Scoring did not finish before the configured deadline."""


class NoCandidatesError(ProteinKnnError):
    """The candidate source produced nothing to rank."""

    def __init__(self, mode: str, window: tuple[int, int] | None = None) -> None:
        self.mode = mode
        self.window = window
        if window is not None:
            msg = f"No candidates for mode={mode!r} in length window [{window[0]}, {window[1]}]"
        else:
            msg = f"No candidates for mode={mode!r}"
        super().__init__(msg)
