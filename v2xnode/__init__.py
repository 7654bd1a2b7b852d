"""V2X accident warning node: packet formats, pipeline stages and the node runner."""

__version__ = "0.1.0"