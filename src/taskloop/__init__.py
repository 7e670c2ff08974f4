"""taskloop - bounded decide-act-observe execution core for coding agents."""

__version__ = "0.1.0"
