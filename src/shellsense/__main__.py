"""Allow `python -m shellsense`."""

from shellsense.cli.commands import main

if __name__ == "__main__":
    main()
