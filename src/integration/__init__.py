"""Integration layer: MongoDB persistence for conversations."""
