import time
import uuid

from milang.native import mi_callable


STD_CLASS = "milang.stdlib.MiStandardLib"
TERMION_CLASS = "milang.stdlib.StdTermion"


def standard_library(extra: str = "") -> str:
    """
    Mi source prepended to every program unless the parser is told otherwise.

    `extra` is more Mi source that gets analysed as part of the standard library.
    """
    return f"""
module std {{

    pub nat fn println~ (string s) -> "{STD_CLASS}";
    pub nat fn print~ (string s) -> "{STD_CLASS}";
    pub nat fn println~ (int i) -> "{STD_CLASS}";
    pub nat fn print~ (int i) -> "{STD_CLASS}";
    pub nat fn println~ (double d) -> "{STD_CLASS}";
    pub nat fn print~ (double d) -> "{STD_CLASS}";
    pub nat fn println~ (float f) -> "{STD_CLASS}";
    pub nat fn print~ (float f) -> "{STD_CLASS}";
    pub nat fn println~ (long l) -> "{STD_CLASS}";
    pub nat fn print~ (long l) -> "{STD_CLASS}";
    pub nat fn println~ (bool b) -> "{STD_CLASS}";
    pub nat fn print~ (bool b) -> "{STD_CLASS}";
    pub nat fn println~ (char c) -> "{STD_CLASS}";
    pub nat fn print~ (char c) -> "{STD_CLASS}";
    pub nat fn sleep~ (long millis) -> "{STD_CLASS}";
    pub nat fn random_uuid_long :: long () -> "{STD_CLASS}";

}}

module termion {{

    pub nat fn color_fg :: string (int r, int g, int b) -> "{TERMION_CLASS}";
    pub nat fn color_bg :: string (int r, int g, int b) -> "{TERMION_CLASS}";

    pub nat fn color_fg :: string (string hex) -> "{TERMION_CLASS}";
    pub nat fn color_bg :: string (string hex) -> "{TERMION_CLASS}";

}}

{extra}
STANDARDLIB_MI_FINISH_CODE;"""


def mi_str(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class MiStandardLib:
    # int and long share the int overloads, double and float the float ones, char the str ones

    @staticmethod
    @mi_callable(name="println")
    def println_str(s: str) -> None:
        print(s)

    @staticmethod
    @mi_callable(name="print")
    def print_str(s: str) -> None:
        print(s, end="")

    @staticmethod
    @mi_callable(name="println")
    def println_int(i: int) -> None:
        print(i)

    @staticmethod
    @mi_callable(name="print")
    def print_int(i: int) -> None:
        print(i, end="")

    @staticmethod
    @mi_callable(name="println")
    def println_float(f: float) -> None:
        print(f)

    @staticmethod
    @mi_callable(name="print")
    def print_float(f: float) -> None:
        print(f, end="")

    @staticmethod
    @mi_callable(name="println")
    def println_bool(b: bool) -> None:
        print(mi_str(b))

    @staticmethod
    @mi_callable(name="print")
    def print_bool(b: bool) -> None:
        print(mi_str(b), end="")

    @staticmethod
    @mi_callable
    def sleep(millis: int) -> None:
        time.sleep(millis / 1000)

    @staticmethod
    @mi_callable
    def random_uuid_long() -> int:
        # most significant half of a random uuid, as a signed 64 bit value
        return int.from_bytes(uuid.uuid4().bytes[:8], "big", signed=True)


def parse_hex(color: str) -> tuple[int, int, int]:
    digits = color.removeprefix("#")
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    if len(digits) != 6:
        raise ValueError(f"Not a hex color: {color!r}")
    value = int(digits, 16)
    return (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF


class StdTermion:
    """
    24 bit ANSI color escapes.
    """

    @staticmethod
    @mi_callable(name="color_fg")
    def color_fg_rgb(r: int, g: int, b: int) -> str:
        return f"\x1b[38;2;{r};{g};{b}m"

    @staticmethod
    @mi_callable(name="color_bg")
    def color_bg_rgb(r: int, g: int, b: int) -> str:
        return f"\x1b[48;2;{r};{g};{b}m"

    @staticmethod
    @mi_callable(name="color_fg")
    def color_fg_hex(color: str) -> str:
        return StdTermion.color_fg_rgb(*parse_hex(color))

    @staticmethod
    @mi_callable(name="color_bg")
    def color_bg_hex(color: str) -> str:
        return StdTermion.color_bg_rgb(*parse_hex(color))
