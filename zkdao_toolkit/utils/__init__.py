from zkdao_toolkit.utils.formatters import (
    console,
    format_address,
    generate_timestamped_filename,
    save_json_output,
)

__all__ = [
    "console",
    "format_address",
    "generate_timestamped_filename",
    "save_json_output",
]
