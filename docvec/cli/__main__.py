"""Allow ``python -m docvec.cli`` execution."""

from docvec.cli.commands import main

main()
