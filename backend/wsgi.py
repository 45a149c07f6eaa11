from cartcode import create_app

app = create_app()
