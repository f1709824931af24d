from smart_inventory import create_app

app = create_app()
