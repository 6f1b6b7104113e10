"""Allow ``python -m docset_indexer.cli`` execution."""

from docset_indexer.cli.indexer import main

main()
