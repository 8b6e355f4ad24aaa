"""Scene Studio - Locked-policy product scene generation from a reference image and a mood."""

__version__ = "0.1.0"
