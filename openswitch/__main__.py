"""Allow running OpenSwitch with `python -m openswitch`."""

from openswitch.cli.cli import main

if __name__ == "__main__":
    main()
