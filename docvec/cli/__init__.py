"""Command-line front end for docvec."""
