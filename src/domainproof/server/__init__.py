"""Production server runner."""
