"""Command line interface for the tyre management schema reconciler."""
