# Shim: the canonical entry point lives in craftmind_cli/cli_main.py.
import sys


def main(*args, **kwargs):
    """Proxy to the canonical CLI entry point."""
    from craftmind_cli.cli_main import main as _main
    return _main(*args, **kwargs)


if __name__ == "__main__":
    sys.exit(main())
