"""python -m sdcfsi 진입점."""

from .cli import app

app()
