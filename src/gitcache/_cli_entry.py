"""Console-script entry point.

The command-line interface needs click, which ships in the ``cli`` extra
rather than with the library.
"""

import sys


def main(argv=None):
    try:
        import click  # noqa: F401
    except ImportError:
        sys.stderr.write(
            "gitcache: the command-line interface needs click.\n"
            "Install it with:  pip install 'gitcache[cli]'\n"
        )
        return 1
    from .cli import main as cli_main
    return cli_main(args=argv, prog_name="gitcache")
