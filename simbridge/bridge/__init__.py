"""Transport and wire codec for the host <-> driver protocol."""
