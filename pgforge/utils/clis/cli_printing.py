# file: pgforge/utils/clis/cli_printing.py
# Shared printing utilities for the pgforge CLIs
# Provides consistent UI components: headers, status messages, tables, code blocks

import json
import re


# =================== ANSI Color Codes ===================

class Colors:
    """ANSI color codes for terminal styling"""
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    BLUE = '\033[34m'
    MAGENTA = '\033[35m'
    CYAN = '\033[36m'
    GREY = '\033[90m'

    BRIGHT_GREEN = '\033[92m'
    BRIGHT_YELLOW = '\033[93m'
    BRIGHT_CYAN = '\033[96m'
    BRIGHT_WHITE = '\033[97m'

    BOLD = '\033[1m'
    DIM = '\033[2m'

    RESET = '\033[0m'


ANSI_ESCAPE = re.compile(r'\033\[[0-9;]*m')


def _strip_ansi(text: str) -> str:
    """Remove ANSI color codes from text for length calculation"""
    return ANSI_ESCAPE.sub('', text)


# =================== Header Functions ===================

def print_box_header(title: str, icon: str = "ℹ", width: int = 76):
    """Print a minimal styled header"""
    print()
    print(f"{Colors.BOLD}{icon} {title}{Colors.RESET}")
    print(f"{Colors.DIM}{'─' * width}{Colors.RESET}")


def print_box_footer(width: int = 76):
    """Print a minimal footer"""
    print()


# =================== Content Display Functions ===================

STYLE_CONFIG = {
    'success': {'icon': '✓', 'color': Colors.GREEN},
    'error': {'icon': '✗', 'color': Colors.RED},
    'warning': {'icon': '⚠', 'color': Colors.YELLOW},
    'info': {'icon': 'ℹ', 'color': Colors.BLUE},
    'progress': {'icon': '⟳', 'color': Colors.CYAN},
    'build': {'icon': '⚒', 'color': Colors.CYAN},
    'skip': {'icon': '•', 'color': Colors.GREY},
}


def print_box_content(text: str, style: str = ""):
    """Print content with minimal styled prefix"""
    if style in STYLE_CONFIG:
        config = STYLE_CONFIG[style]
        print(f"  {config['color']}{config['icon']}{Colors.RESET} {text}")
    else:
        print(f"  {text}")


def print_code_block(code: str, language: str = "text", show_line_numbers: bool = False):
    """Print code block with minimal syntax highlighting"""
    if language.lower() == 'json':
        lines = json.dumps(json.loads(code), indent=2).split('\n')
    elif language.lower() in ['yaml', 'yml']:
        lines = []
        for line in code.split('\n'):
            if ':' in line and not line.strip().startswith('#'):
                key, value = line.split(':', 1)
                lines.append(f"{Colors.CYAN}{key}{Colors.RESET}:{value}")
            elif line.strip().startswith('#'):
                lines.append(f"{Colors.DIM}{line}{Colors.RESET}")
            else:
                lines.append(line)
    else:
        lines = code.split('\n')

    for i, line in enumerate(lines, 1):
        if show_line_numbers:
            print(f"  {Colors.DIM}{i:3d}{Colors.RESET} {line}")
        else:
            print(f"  {line}")


# =================== Status Messages ===================

def print_status(message: str, status: str = "info"):
    """Print a minimal status message with icon and color"""
    config = STYLE_CONFIG.get(status, {'icon': '•', 'color': ''})
    print(f"{config['color']}{config['icon']}{Colors.RESET} {message}")


# =================== Table Printing ===================

def print_table_header(columns: list, widths: list):
    """Print a table header with columns"""
    header_parts = [
        f"{Colors.BOLD}{Colors.BRIGHT_WHITE}{name:<{width}}{Colors.RESET}"
        for name, width in zip(columns, widths)
    ]
    print(f"  {' │ '.join(header_parts)}")

    sep_parts = [f"{Colors.BRIGHT_CYAN}{'─' * w}{Colors.RESET}" for w in widths]
    print(f"  {f'{Colors.BRIGHT_CYAN}─┼─{Colors.RESET}'.join(sep_parts)}")


def print_table_row(values: list, widths: list, styles: list = None):
    """Print a table row"""
    if styles is None:
        styles = [""] * len(values)

    color_map = {
        'grey': Colors.GREY,
        'green': Colors.BRIGHT_GREEN,
        'yellow': Colors.BRIGHT_YELLOW,
        'cyan': Colors.BRIGHT_CYAN,
    }

    row_parts = []
    for value, width, style in zip(values, widths, styles):
        color = color_map.get(style.lower(), '')
        if color:
            padding = width - len(_strip_ansi(value))
            row_parts.append(f"{color}{value}{Colors.RESET}" + " " * padding)
        else:
            row_parts.append(f"{value:<{width}}")

    print(f"  {f' {Colors.DIM}│{Colors.RESET} '.join(row_parts)}")
