"""Module containing custom exceptions."""


class CustomError(Exception):
    """Custom AlphaLibSearch error class."""

    _error_code = ""
    _msg = ""
    _detail_msg = ""

    @property
    def error_code(self):
        return self._error_code

    @property
    def msg(self):
        return self._msg

    @property
    def detail_msg(self):
        return self._detail_msg

    def __init__(self, detail_msg: str = ""):
        self._detail_msg = detail_msg

        super().__init__(self._msg)

    def __str__(self):
        return f"{self._error_code}: {self._msg}\n{self._detail_msg}"


class LibraryFormatError(CustomError):
    """Raise when a library stream cannot be searched.

    Covers a missing or zero candidate count header and modification names
    that are not in the modification table. The search is aborted, no
    partial output is written.
    """

    _error_code = "LIBRARY_FORMAT"

    _msg = "Wrong library file, can't continue."


class SpectralProbabilityError(CustomError):
    """Raise when a computed spectral probability is not positive.

    A non-positive probability means the score graph and the scorer disagree,
    which is a defect and not a property of the data.
    """

    _error_code = "SPEC_PROB_INVALID"

    _msg = "Computed spectral probability is not positive."
