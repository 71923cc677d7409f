# Overview: WSGI entry point; FLASK_APP target for the CLI and production servers.

from marketplace import create_app

app = create_app()
