"""Command-line tools for learners and operators."""
