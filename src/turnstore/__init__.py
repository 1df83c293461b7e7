"""turnstore - durable conversation history for stateful completion APIs."""

__version__ = "0.1.0"
