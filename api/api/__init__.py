"""HTTP host for the tyre management schema reconciler."""

__version__ = "0.3.0"
