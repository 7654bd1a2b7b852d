"""Character LCD and SH1106 OLED output for V2X alerts over I2C."""

from __future__ import annotations

import os
import threading
import time
from enum import IntEnum
from typing import Callable, Protocol

LCD_BUS = "/dev/i2c-4"
OLED_BUS = "/dev/i2c-1"
LCD_ADDR = 0x27
OLED_ADDR = 0x3C
I2C_SLAVE = 0x0703

LCD_CHR = 1
LCD_CMD = 0
LINE1 = 0x80
LINE2 = 0xC0
LCD_BACKLIGHT = 0x08
ENABLE = 0x04
LCD_WIDTH = 16

OLED_WIDTH = 128
OLED_PAGES = 8
OLED_RAM_COLUMNS = 130
OLED_COLUMN_OFFSET = 2

_LCD_INIT = (0x33, 0x32, 0x28, 0x0C, 0x01)
_OLED_INIT = (
    0xAE, 0xD5, 0x80, 0xA8, 0x3F, 0xD3, 0x00, 0x40, 0x8D, 0x14, 0x20, 0x02,
    0xA1, 0xC8, 0xDA, 0x12, 0x81, 0xCF, 0xD9, 0xF1, 0xDB, 0x40, 0xA4, 0xA6, 0xAF,
)

_FONT = {
    " ": (0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00),
    ":": (0x00, 0x00, 0x24, 0x24, 0x00, 0x00, 0x00, 0x00),
    "0": (0x3C, 0x42, 0x42, 0x42, 0x42, 0x42, 0x3C, 0x00),
    "1": (0x00, 0x44, 0x42, 0x7E, 0x40, 0x40, 0x00, 0x00),
    "2": (0x00, 0x62, 0x52, 0x4A, 0x46, 0x42, 0x00, 0x00),
    "3": (0x3C, 0x42, 0x02, 0x3C, 0x02, 0x42, 0x3C, 0x00),
    "4": (0x18, 0x14, 0x12, 0x7E, 0x10, 0x10, 0x00, 0x00),
    "5": (0x2E, 0x4A, 0x4A, 0x4A, 0x4A, 0x32, 0x00, 0x00),
    "6": (0x3C, 0x4A, 0x4A, 0x4A, 0x4A, 0x30, 0x00, 0x00),
    "7": (0x02, 0x02, 0x02, 0x72, 0x0A, 0x06, 0x00, 0x00),
    "8": (0x34, 0x4A, 0x4A, 0x4A, 0x4A, 0x34, 0x00, 0x00),
    "9": (0x0C, 0x52, 0x52, 0x52, 0x52, 0x3C, 0x00, 0x00),
    "A": (0x7C, 0x12, 0x11, 0x12, 0x7C, 0x00, 0x00, 0x00),
    "D": (0x7F, 0x41, 0x41, 0x41, 0x22, 0x1C, 0x00, 0x00),
    "I": (0x00, 0x41, 0x7F, 0x41, 0x00, 0x00, 0x00, 0x00),
    "L": (0x7F, 0x40, 0x40, 0x40, 0x40, 0x40, 0x40, 0x40),
    "N": (0x7F, 0x04, 0x08, 0x10, 0x7F, 0x00, 0x00, 0x00),
    "E": (0x7F, 0x49, 0x49, 0x49, 0x41, 0x41, 0x00, 0x00),
    "S": (0x22, 0x49, 0x49, 0x49, 0x49, 0x32, 0x00, 0x00),
    "T": (0x01, 0x01, 0x7F, 0x01, 0x01, 0x00, 0x00, 0x00),
    "m": (0x7C, 0x04, 0x18, 0x04, 0x78, 0x00, 0x00, 0x00),
    ",": (0x00, 0x50, 0x30, 0x00, 0x00, 0x00, 0x00, 0x00),
}
_BLANK_GLYPH = (0,) * 8


class DisplayMode(IntEnum):
    TX = 0
    RELAY = 1
    ALERT = 2


class _Writable(Protocol):
    def write(self, data: bytes) -> object: ...


class I2CDevice:
    """A Linux I2C character device bound to one slave address."""

    def __init__(self, path: str, address: int) -> None:
        import fcntl

        self.path = path
        self.address = address
        self._fd = os.open(path, os.O_RDWR)
        try:
            fcntl.ioctl(self._fd, I2C_SLAVE, address)
        except OSError:
            os.close(self._fd)
            raise

    def write(self, data: bytes) -> int:
        return os.write(self._fd, bytes(data))

    def close(self) -> None:
        if self._fd >= 0:
            os.close(self._fd)
            self._fd = -1


def lcd_lines(
    mode: int, sid: int, aid: int, dist: int, lane: int, acc_type: int
) -> tuple[str, str]:
    """Return the two 16-column LCD lines for a display mode."""
    if mode == DisplayMode.ALERT:
        lines = ("* ALERT: FINAL *", f"RECV FR CH2:{dist:4d}m")
    elif mode == DisplayMode.RELAY:
        lines = (f"RELAYING...{sid & 0xFFFF:04X}", f"DIST:{dist}m")
    else:
        lines = ("MY ACCIDENT!", f"L:{lane} AID:{aid & 0xFFFF:04X}")
    return lines[0][:LCD_WIDTH], lines[1][:LCD_WIDTH]


def oled_message(lane: int, dist: int) -> str:
    """Return the text shown on the bottom row of the OLED."""
    return f"LANE:{lane}, DIST:{dist}m"


def mission_icon_buffer() -> list[bytearray]:
    """Render the warning triangle with an exclamation mark.

    Returns 128 columns, each holding 8 page bytes (bit n of page p is row 8p+n).
    """
    columns = [bytearray(OLED_PAGES) for _ in range(OLED_WIDTH)]
    for y in range(56):
        width = int(y * 0.6)
        for x in range(64 - width, 64 + width + 1):
            if not 0 <= x < OLED_WIDTH:
                continue
            in_bar = 61 <= x <= 67 and (10 <= y <= 35 or 42 <= y <= 48)
            if in_bar:
                continue
            columns[x][y // 8] |= 1 << (y % 8)
    return columns


class Lcd:
    """HD44780 character LCD behind a PCF8574 backpack, driven in 4-bit mode."""

    def __init__(self, device: _Writable, sleep: Callable[[float], None] = time.sleep) -> None:
        self.device = device
        self._sleep = sleep

    def _write(self, value: int) -> None:
        self.device.write(bytes([value & 0xFF]))

    def _toggle_enable(self, bits: int) -> None:
        self._write(bits | ENABLE | LCD_BACKLIGHT)
        self._sleep(0.0006)
        self._write((bits & ~ENABLE) | LCD_BACKLIGHT)
        self._sleep(0.0006)

    def send_byte(self, bits: int, mode: int) -> None:
        """Send one command or character as two nibbles."""
        high = mode | (bits & 0xF0) | LCD_BACKLIGHT
        low = mode | ((bits << 4) & 0xF0) | LCD_BACKLIGHT
        self._write(high)
        self._toggle_enable(high)
        self._write(low)
        self._toggle_enable(low)

    def init(self) -> None:
        for command in _LCD_INIT:
            self.send_byte(command, LCD_CMD)
            self._sleep(0.005)

    def show(self, line1: str, line2: str) -> None:
        """Clear the screen and write two lines."""
        self.send_byte(0x01, LCD_CMD)
        self._sleep(0.002)
        for address, text in ((LINE1, line1), (LINE2, line2)):
            self.send_byte(address, LCD_CMD)
            for char in text.encode("ascii", "replace"):
                self.send_byte(char, LCD_CHR)


class Oled:
    """SH1106 128x64 OLED in page addressing mode."""

    def __init__(self, device: _Writable) -> None:
        self.device = device

    def _command(self, command: int) -> None:
        self.device.write(bytes([0x00, command & 0xFF]))

    def _data(self, value: int) -> None:
        self.device.write(bytes([0x40, value & 0xFF]))

    def init(self) -> None:
        for command in _OLED_INIT:
            self._command(command)
        self.clear()

    def clear(self) -> None:
        for page in range(OLED_PAGES):
            self.set_pos(0, page)
            for _ in range(OLED_RAM_COLUMNS):
                self._data(0x00)

    def set_pos(self, x: int, y: int) -> None:
        """Move the write cursor to column ``x`` of page ``y``."""
        x = (x + OLED_COLUMN_OFFSET) & 0xFF
        self._command(0xB0 + y)
        self._command(((x & 0xF0) >> 4) | 0x10)
        self._command(x & 0x0F)

    def draw_icon(self) -> None:
        columns = mission_icon_buffer()
        for page in range(7):
            self.set_pos(0, page)
            for column in columns:
                self._data(column[page])

    def print_text(self, text: str) -> None:
        """Write ``text`` centred on the bottom page."""
        x = max((OLED_WIDTH - len(text) * 8) // 2, 0)
        for char in text:
            self.set_pos(x, 7)
            for row in _FONT.get(char, _BLANK_GLYPH):
                self._data(row)
            x += 8


class Display:
    """The LCD and OLED together; either may be missing."""

    def __init__(self, lcd: Lcd | None = None, oled: Oled | None = None) -> None:
        self.lcd = lcd
        self.oled = oled
        self._lock = threading.Lock()

    @property
    def is_complete(self) -> bool:
        return self.lcd is not None and self.oled is not None

    @classmethod
    def open(cls, lcd_bus: str = LCD_BUS, oled_bus: str = OLED_BUS) -> Display:
        """Open and initialise both panels; a panel that cannot be opened is left out."""
        lcd = oled = None
        try:
            lcd = Lcd(I2CDevice(lcd_bus, LCD_ADDR))
            lcd.init()
        except OSError:
            lcd = None
        try:
            oled = Oled(I2CDevice(oled_bus, OLED_ADDR))
            oled.init()
        except OSError:
            oled = None
        return cls(lcd, oled)

    def show(
        self, mode: int, sid: int, aid: int, dist: int, lane: int, acc_type: int
    ) -> None:
        """Show a V2X state on both panels."""
        with self._lock:
            line1, line2 = lcd_lines(mode, sid, aid, dist, lane, acc_type)
            if self.lcd is not None:
                self.lcd.show(line1, line2)
            if self.oled is not None:
                self.oled.clear()
                self.oled.draw_icon()
                self.oled.print_text(oled_message(lane, dist))