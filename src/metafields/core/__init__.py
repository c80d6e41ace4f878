"""Core schema model: IR, normalization, rule evaluation and form configuration."""
