"""Allow ``python -m ola`` (used to launch recursion waves)."""

from ola.cli import main

if __name__ == "__main__":
    main()
