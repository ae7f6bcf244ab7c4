from app.safework import create_app

app = create_app()
