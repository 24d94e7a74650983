"""SM-2 spaced repetition: scheduling math, quality mapping and the due queue."""
