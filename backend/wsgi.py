from shopguard import create_app

app = create_app()
