"""Allow ``python -m atomic_arrays``."""

from atomic_arrays.cli import app

app(prog_name="atomic-arrays")
