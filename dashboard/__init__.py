"""Django app exposing aggregation results as chart and table JSON."""
