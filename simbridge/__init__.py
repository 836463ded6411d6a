"""SimBridge: lockstep bridge between a rendering host and an external stepping driver."""

__version__ = "0.1.0"
