"""Event registration client: slot holds, dynamic intake forms and submission."""

__version__ = "1.4.0"
