"""Command-line interface (``clientgallery``)."""
