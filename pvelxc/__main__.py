from pvelxc.cli import app

app()
