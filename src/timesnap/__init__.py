"""
TimeSnap - Local time capsules that open on a future date.

A capsule bundles a title, a description, photos, videos and voice messages,
and hides its content until its unlock date passes. It provides:
- A durable, versioned capsule collection stored in SQLite
- A media store for attachment files, cleaned up with their capsule
- An unlock policy that gates what a locked capsule reveals

Example usage:
    $ timesnap create "Letter to 2030" --unlock 2030-01-01 --photo me.jpg
    $ timesnap list
    $ timesnap share <capsule_id> friend@example.com
"""

__version__ = "0.1.0"
__author__ = "TimeSnap Contributors"

__all__ = [
    "__version__",
    "__author__",
]
