from fedmrf import create_app, db, cli
from fedmrf.models import Activity, StoredObject, User

app = create_app()
cli.register(app)


@app.shell_context_processor
def make_shell_context():
    return {'db': db, 'app': app, 'User': User, 'Activity': Activity, 'StoredObject': StoredObject}
