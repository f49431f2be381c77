"""Order document pipeline: receipt and pick-slip PDFs for purchase orders."""

__version__ = "1.0.0"
