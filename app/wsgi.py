from app.gamenight import create_app

app = create_app()
