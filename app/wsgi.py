from app.lucien import create_app

app = create_app()
