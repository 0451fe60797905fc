"""Model layer of the chunked tilemap generator: pattern data, WFC solver, overlapping model and chunk scheduling."""
