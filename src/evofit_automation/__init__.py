"""EvoFit automation: workflow engine for the meal-planning platform."""

__version__ = "0.1.0"
