from simple_sane.ScannerModels import Status


class SaneError(Exception):
    """A libsane call returned a status other than GOOD.

    The message is rendered by ``sane_strstatus`` of the library that
    produced the status.
    """

    def __init__(self, status: int, api=None, message: str|None = None):
        self.status = Status(status)
        self._api = api
        self._message = message
        super().__init__(self.status)

    def __str__(self) -> str:
        if self._message is not None:
            return self._message
        if self._api is None:
            return self.status.name
        description = self._api.sane_strstatus(self.status) or b""
        return description.decode("utf-8", errors="replace")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r})"


class IncompleteScanError(SaneError):
    """The read loop failed after ``data`` had already been received."""

    def __init__(self, status: int, api=None, data: bytes = b""):
        super().__init__(status, api)
        self.data = data
