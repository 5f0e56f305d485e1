"""SmartVid backend test suite. Run with `python -m pytest` from the repository root."""
