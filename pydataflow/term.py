import colorsys
import hashlib
import re

import colorful as cf
from pygments import highlight
from pygments.formatters import Terminal256Formatter
from pygments.lexers import LlvmLexer

QUOTED_NAMES_RE = re.compile(r'((%|@)"((?:[^"\\]|\\.)*)")')


def term_color_hsv(h: float, s: float, v: float) -> str:
    r, g, b = colorsys.hsv_to_rgb(h, s, v)
    r, g, b = int(r * 255), int(g * 255), int(b * 255)
    return f"\x1b[38;2;{r};{g};{b}m"


def name_color(name: str) -> str:
    # sha256 rather than hash() so colors survive PYTHONHASHSEED
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    hue = int.from_bytes(digest[:8], "little") / ((1 << 64) - 1)
    return term_color_hsv(0.1 + hue * 0.9, 1, 1)


def colored_name(name: str) -> str:
    return f"{name_color(name)}{name}{cf.reset}"


def ir_str_unquote_names(quoted_name_ir: str) -> str:
    return QUOTED_NAMES_RE.sub(lambda m: f"{m.group(2)}{m.group(3)}", quoted_name_ir)


def ir_str_pretty(inst_ir: str, style: str = "inkpot") -> str:
    unquoted = ir_str_unquote_names(inst_ir)
    return highlight(unquoted, LlvmLexer(), Terminal256Formatter(style=style)).rstrip()
