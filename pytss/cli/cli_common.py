import json
import logging
import os
import sys
from typing import Optional

import click
import coloredlogs
import hexdump
from pygments import formatters, highlight, lexers

TSS_SERVER_ENV_VAR = "PYTSS_SERVER_URL"

# Global options
COLORED_OUTPUT: bool = True


def default_json_encoder(obj):
    if isinstance(obj, bytes):
        return f"<{obj.hex()}>"
    raise TypeError()


def print_json(buf, colored: Optional[bool] = None, default=default_json_encoder) -> str:
    if colored is None:
        colored = user_requested_colored_output()
    formatted_json = json.dumps(buf, sort_keys=True, indent=4, default=default)
    if colored:
        colorful_json = highlight(
            formatted_json, lexers.JsonLexer(), formatters.Terminal256Formatter(style="stata-dark")
        )
        print(colorful_json)
        return colorful_json
    else:
        print(formatted_json)
        return formatted_json


def print_hex(data, colored: Optional[bool] = None) -> None:
    if colored is None:
        colored = user_requested_colored_output()
    hex_dump = hexdump.hexdump(data, result="return")
    if colored:
        print(highlight(hex_dump, lexers.HexdumpLexer(), formatters.Terminal256Formatter(style="native")))
    else:
        print(hex_dump, end="\n\n")


def set_verbosity(level: int) -> None:
    coloredlogs.set_level(logging.INFO - (level * 10))


def set_color_flag(value: bool) -> None:
    global COLORED_OUTPUT
    COLORED_OUTPUT = value


def isatty() -> bool:
    try:
        return os.isatty(sys.stdout.fileno())
    except (AttributeError, OSError, ValueError):
        # captured stdout, e.g. under CliRunner
        return False


def user_requested_colored_output() -> bool:
    return COLORED_OUTPUT and isatty()


class BasedIntParamType(click.ParamType):
    name = "based int"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        try:
            return int(value, 0)
        except ValueError:
            self.fail(f"{value!r} is not a valid int.", param, ctx)


class HexBytesParamType(click.ParamType):
    name = "hex bytes"

    def convert(self, value, param, ctx):
        if isinstance(value, bytes):
            return value
        value = value.strip()
        if value.lower().startswith("0x"):
            value = value[2:]
        try:
            return bytes.fromhex(value)
        except ValueError:
            self.fail(f"{value!r} is not a valid hex string.", param, ctx)


BASED_INT = BasedIntParamType()
HEX_BYTES = HexBytesParamType()
