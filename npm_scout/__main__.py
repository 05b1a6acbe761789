from .cli import app

app(prog_name="npm-scout")
