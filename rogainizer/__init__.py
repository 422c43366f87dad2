import os
from flask import Flask
from flask_cors import CORS

from .datastore_pg import Database, _env_int


EVENT_SCHEMAS = ('courses', 'results')

INIT_SCRIPTS = {
    'courses': 'sql/init.sql',
    'results': 'sql/init_results.sql',
}


def create_app(test_config=None, database=None):
    app = Flask(__name__)
    app.config.update(
        EVENT_SCHEMA=os.environ.get('EVENT_SCHEMA', 'courses').strip().lower(),
        JSON_LOADER_TIMEOUT=_env_int('JSON_LOADER_TIMEOUT', 15),
    )
    if test_config:
        app.config.update(test_config)
    if app.config['EVENT_SCHEMA'] not in EVENT_SCHEMAS:
        raise RuntimeError(
            f"EVENT_SCHEMA must be one of {', '.join(EVENT_SCHEMAS)}; got {app.config['EVENT_SCHEMA']!r}"
        )

    if database is None:
        # PostgreSQL-only; raises RuntimeError when DATABASE_URL is missing
        database = Database.from_env()
        try:
            database.open()
        except Exception:  # pragma: no cover
            app.logger.exception("PostgreSQL pool initialization failed; continuing without pool")
    database.init_script = INIT_SCRIPTS[app.config['EVENT_SCHEMA']]
    app.extensions['rogainizer.db'] = database

    CORS(app)

    from . import routes
    app.register_blueprint(routes.bp)
    if app.config['EVENT_SCHEMA'] == 'results':
        app.register_blueprint(routes.results_bp)
    else:
        app.register_blueprint(routes.events_bp)

    app.logger.info("Rogainizer API ready (event schema: %s)", app.config['EVENT_SCHEMA'])
    return app


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    create_app().run(host='0.0.0.0', port=port)
