import sys

from pgforge.utils.clis.manifest_cli import cli_manifest_main

if __name__ == "__main__":
    sys.exit(cli_manifest_main())
