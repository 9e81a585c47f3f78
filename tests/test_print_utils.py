# tests/test_print_utils.py
from utils.print_utils import BOLD, GREEN, RESET, YELLOW, markdown_to_ansi


def test_headings_bullets_and_inline_styles():
    rendered = markdown_to_ansi("## Heap\n- uses **512 MB** of `-Xmx1g`")
    heading, bullet = rendered.splitlines()
    assert heading.endswith(f"Heap{RESET}")
    assert bullet.startswith("• uses ")
    assert f"{BOLD}512 MB{RESET}" in bullet
    assert f"{YELLOW}-Xmx1g{RESET}" in bullet


def test_code_fences_are_indented_not_styled():
    rendered = markdown_to_ansi("```\n**not bold**\n```")
    assert rendered == f"{GREEN}    **not bold**{RESET}"


def test_empty():
    assert markdown_to_ansi("") == ""
