"""Services package for the Topic-to-Video Pipeline."""
