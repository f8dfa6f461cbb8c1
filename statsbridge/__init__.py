"""statsbridge - LLM function tools proxying a local stats backend."""

__version__ = "0.1.0"
