"""calorieai - food photo nutrition analysis pipeline."""

__version__ = "1.0.0"
