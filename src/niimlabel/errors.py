"""Exception hierarchy for the label printer driver."""


class PrinterError(Exception):
    """Base exception for all printer errors."""

    pass


class PrinterConnectionError(PrinterError):
    """Error connecting to or communicating with printer."""

    pass


class NotConnectedError(PrinterConnectionError):
    """A print was requested while no printer is connected."""

    pass


class CharacteristicNotFoundError(PrinterConnectionError):
    """Connected device exposes no write-without-response + notify characteristic."""

    pass


class TransportWriteError(PrinterConnectionError):
    """A characteristic write failed (including disconnects mid-job)."""

    pass


class PrintError(PrinterError):
    """Error during print operation."""

    pass


class UnsupportedConditionError(PrintError):
    """Condition label outside the CN / FB / B set."""

    pass


class PrinterBusyError(PrintError):
    """Another print job is still streaming."""

    pass


class RenderError(PrintError):
    """Label image could not be generated."""

    pass
