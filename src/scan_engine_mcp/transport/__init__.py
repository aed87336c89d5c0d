"""Transport layer: serial link to the device."""

from .serial_connection import SerialConnection, SerialSettings
