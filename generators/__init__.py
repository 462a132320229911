"""Code generators for compiled scenes."""
