"""Input, recognition, streaming and utility modules."""
