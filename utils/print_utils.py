# utils/print_utils.py
import re

RESET = "\033[0m"
BOLD = "\033[1m"
ITALIC = "\033[3m"
CYAN = "\033[36m"
YELLOW = "\033[33m"
GREEN = "\033[32m"

HEADING = re.compile(r"^(#{1,6})\s+(.*)$")
BULLET = re.compile(r"^(\s*)[-*+]\s+")
BOLD_TEXT = re.compile(r"\*\*(.+?)\*\*|__(.+?)__")
ITALIC_TEXT = re.compile(r"(?<![*\w])\*(?!\s)(.+?)(?<!\s)\*(?![*\w])")
INLINE_CODE = re.compile(r"`([^`]+)`")
FENCE = re.compile(r"^\s*```")


def divider(char="-", length=60):
    print(char * length)


def print_header(name: str):
    divider("=")
    print(f"🔹 {name}")


def markdown_to_ansi(text: str) -> str:
    """Render the common Markdown bits of an assistant reply for a terminal."""
    if not text:
        return ""
    out = []
    in_code = False
    for line in text.splitlines():
        if FENCE.match(line):
            in_code = not in_code
            continue
        if in_code:
            out.append(f"{GREEN}    {line}{RESET}")
            continue

        heading = HEADING.match(line)
        if heading:
            out.append(f"{BOLD}{CYAN}{heading.group(2)}{RESET}")
            continue

        line = BULLET.sub(lambda m: f"{m.group(1)}• ", line)
        line = INLINE_CODE.sub(lambda m: f"{YELLOW}{m.group(1)}{RESET}", line)
        line = BOLD_TEXT.sub(lambda m: f"{BOLD}{m.group(1) or m.group(2)}{RESET}", line)
        line = ITALIC_TEXT.sub(lambda m: f"{ITALIC}{m.group(1)}{RESET}", line)
        out.append(line)
    return "\n".join(out)
