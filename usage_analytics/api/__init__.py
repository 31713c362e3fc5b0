"""HTTP surfaces for the capture, analytics and time-series services."""
