from lars.cli.app import app

app()
