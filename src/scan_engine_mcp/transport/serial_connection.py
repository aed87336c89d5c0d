"""Serial connection to a scan engine.

Ports are opened through ``serial.serial_for_url`` so a plain device path
(``/dev/ttyACM0``, ``COM3``) and pyserial URLs (``loop://``,
``socket://host:port``) are all accepted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import serial

from ..protocol.framing import Frame
from ..protocol.sequencer import ACTIVATION_SCRIPT, ScriptStep, run_script, transact

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 9600


@dataclass
class SerialSettings:
    """Line settings used when opening the port.

    ``timeout=None`` blocks reads indefinitely; a finite timeout turns a
    silent device into a ``TransportError`` from the frame parser.
    """

    port: str
    baudrate: int = DEFAULT_BAUDRATE
    timeout: float | None = None
    write_timeout: float | None = None


class SerialConnection:
    """Manages the serial link to the scan engine.

    Usage::

        with SerialConnection("/dev/ttyACM0") as conn:
            reply = conn.transact("AIM_ON")
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout: float | None = None,
        write_timeout: float | None = None,
    ) -> None:
        self._settings = SerialSettings(
            port=port,
            baudrate=baudrate,
            timeout=timeout,
            write_timeout=write_timeout,
        )
        self._serial: serial.SerialBase | None = None

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def settings(self) -> SerialSettings:
        return self._settings

    def open(self) -> SerialSettings:
        """Open the port with 8N1 framing.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        if self.connected:
            return self._settings

        s = self._settings
        try:
            self._serial = serial.serial_for_url(
                s.port,
                baudrate=s.baudrate,
                timeout=s.timeout,
                write_timeout=s.write_timeout,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
            )
        except (serial.SerialException, ValueError) as e:
            raise ConnectionError(f"Could not open {s.port}: {e}") from e

        self._serial.reset_input_buffer()
        logger.info("Connected to %s at %d baud", s.port, s.baudrate)
        return s

    def close(self) -> None:
        if self._serial is None:
            return
        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing %s: %s", self._settings.port, e)
        finally:
            self._serial = None
            logger.info("Disconnected from %s", self._settings.port)

    def __enter__(self) -> SerialConnection:
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _require_port(self) -> serial.SerialBase:
        if not self.connected:
            raise ConnectionError("Not connected to device")
        return self._serial

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes; an empty result means timeout or EOF."""
        return self._require_port().read(size)

    def write(self, data: bytes) -> int:
        return self._require_port().write(data)

    def flush(self) -> None:
        self._require_port().flush()

    def reset_input_buffer(self) -> None:
        """Discard bytes received but not yet read."""
        self._require_port().reset_input_buffer()

    def transact(self, command: str) -> Frame:
        """Send a named command and return the validated reply frame."""
        return transact(self, command)

    def run_script(self, script: Sequence[ScriptStep] = ACTIVATION_SCRIPT) -> list[Frame]:
        return run_script(self, script)
