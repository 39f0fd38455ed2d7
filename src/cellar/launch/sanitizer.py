"""
Tokenizing and sanitizing of user supplied launch options.

Launch options follow Steam's convention: a space separated string in which
``%command%`` stands for the game invocation, e.g.
``gamemoderun %command% -dx11``. Every other token must pass
``sanitize_token`` before it reaches an argv.
"""

import re
from typing import List

from cellar.cellar_exceptions import UnclosedQuote, UnsafeOption

PLACEHOLDER = "%command%"

DENIED_CHARACTERS = frozenset("|&;`$(){}[]*?~<>'\"\\")
DENIED_SUBSTRINGS = ("..", "./", "//")

# Compared case-insensitively
SAFE_FLAGS = frozenset(flag.lower() for flag in (
    # Common engine and launcher switches
    "-dx9", "-dx11", "-dx12", "-d3d9", "-d3d11", "-d3d12", "-vulkan", "-opengl", "-gl",
    "-windowed", "-window", "-fullscreen", "-full", "-borderless", "-noborder",
    "-novid", "-nosplash", "-nointro", "-skipintro", "-nolauncher", "-nostartupmovies",
    "-nomovies", "-console", "-dev", "-high", "-safe", "-nohomedir", "-nojoy",
    "-useallavailablecores", "-nosound", "-nomusic", "-offline",
    "-w", "-h", "-width", "-height", "-refresh", "-freq", "-fps", "-fps_max",
    "-language", "-lang", "-res", "-resolution", "-screen-width", "-screen-height",
    "-screen-fullscreen", "-popupwindow", "-force-d3d11", "-force-d3d12",
    "-force-vulkan", "-force-glcore",
    # Long form switches
    "--fullscreen", "--windowed", "--borderless", "--width", "--height", "--fps",
    "--refresh", "--resolution", "--language", "--skip-intro", "--no-launcher",
    "--offline",
))

_INTEGER = re.compile(r"^\d+$")
_RESOLUTION = re.compile(r"^\d+x\d+$")
_PLAIN_WORD = re.compile(r"^[A-Za-z0-9_.-]+$")


def tokenize_launch_options(launch_options: str) -> List[str]:
    """
    Split launch options on spaces; double quotes group a token and are
    dropped.

    Raises:
        UnclosedQuote: A double quote is never closed
    """
    tokens = []
    current = []
    in_quotes = False
    for ch in launch_options:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == " " and not in_quotes:
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(ch)

    if in_quotes:
        raise UnclosedQuote("Unclosed quote in launch options")
    if current:
        tokens.append("".join(current))
    return tokens


def _is_control(ch: str) -> bool:
    return ord(ch) < 0x20 or ord(ch) == 0x7F or (ch.isspace() and ch != " ")


def _is_number_or_resolution(value: str) -> bool:
    return bool(_INTEGER.match(value) or _RESOLUTION.match(value))


def _flag_allowed(token: str) -> bool:
    if _is_number_or_resolution(token.lstrip("-")):
        return True
    if "=" in token:
        name, value = token.split("=", 1)
        return name.lower() in SAFE_FLAGS and (
            _is_number_or_resolution(value) or bool(_PLAIN_WORD.match(value))
        )
    return token.lower() in SAFE_FLAGS


def sanitize_token(token: str) -> str:
    """
    Return ``token`` unchanged if it is safe to place in an argv.

    Raises:
        UnsafeOption: The token carries a shell metacharacter, a control
            character, a path traversal sequence, or is an unknown flag
    """
    for ch in token:
        if ch in DENIED_CHARACTERS or _is_control(ch):
            raise UnsafeOption(f"Launch option {token!r} contains forbidden character {ch!r}")
    for sub in DENIED_SUBSTRINGS:
        if sub in token:
            raise UnsafeOption(f"Launch option {token!r} contains forbidden sequence {sub!r}")
    if token.startswith("-") and not _flag_allowed(token):
        raise UnsafeOption(f"Launch option {token!r} is not a recognised flag")
    return token
