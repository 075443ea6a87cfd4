"""Calendar time-overlay engine for the clinic calendar."""
