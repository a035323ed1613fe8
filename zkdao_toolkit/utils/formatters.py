"""Shared formatting and file utilities for commands."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from rich.console import Console
from rich.table import Table

# Shared console instance
console = Console()


def format_address(address: str, length: int = 10) -> str:
    """
    Format an Ethereum address (or any long hex value) as "0x1234...5678".

    Args:
        address: Ethereum address or hex string
        length: Values up to this length are returned unchanged

    Returns:
        Shortened string, or "N/A" for empty input
    """
    if not address:
        return "N/A"
    if len(address) <= length:
        return address
    return f"{address[:6]}...{address[-4:]}"


def generate_timestamped_filename(prefix: str, extension: str = "json") -> str:
    """Filename like "prefix_20240315_123456.json"."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{timestamp}.{extension}"


def save_json_output(
    data: Dict[str, Any],
    filename: str,
    output_dir: str = "output",
    print_path: bool = True,
) -> str:
    """
    Save data to a JSON file with automatic directory creation.

    Args:
        data: Data to save
        filename: Output filename (can include subdirectories)
        output_dir: Base output directory (default: 'output')
        print_path: Whether to print the saved file path

    Returns:
        Full path to saved file
    """
    filepath = Path(output_dir) / filename
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, "w") as f:
        json.dump(data, f, indent=2)

    if print_path:
        console.print(f"[cyan]Data saved to:[/cyan] {filepath}")

    return str(filepath)


def create_chains_table() -> Table:
    table = Table(
        show_header=True,
        header_style="bold cyan",
        show_lines=False,
        pad_edge=False,
        box=None,
    )
    table.add_column("Chain", width=16)
    table.add_column("ID", justify="right")
    table.add_column("Selector", justify="right")
    table.add_column("LINK", width=14)
    table.add_column("CCIP Router", width=14)
    table.add_column("Subscription", justify="right")
    table.add_column("Destinations")
    return table
