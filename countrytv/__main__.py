# countrytv/__main__.py
import sys
from .cli import app


def cli(argv=None):
    """
    Launcher so you can run:
      - python3 -m countrytv validate --dry-run
      - python3 -m countrytv serve
    """
    if argv is None:
        argv = sys.argv[1:]
    return app(args=argv, prog_name="countrytv")


if __name__ == "__main__":
    sys.exit(cli())
