"""gg: fetch, analyze and converge a local git branch with its remote."""

__version__ = "0.3.0"
