"""Command line tools for twinbridge."""
