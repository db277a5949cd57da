from groundops_api import create_app

app = create_app()
