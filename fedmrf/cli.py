# if commands in this file are not working (e.g. 'flask mrf describe') make sure you set the FLASK_APP environment variable.
# e.g. export FLASK_APP=server.py
import json

import click
from flask import current_app

from fedmrf import db
from fedmrf.federation.mrf.chain import PolicyChain
from fedmrf.federation.mrf.config import SIMPLE_RULE_KEYS, MRFConfig
from fedmrf.federation.producer import get_producer


def register(app):
    @app.cli.command("init-db")
    def init_db():
        with app.app_context():
            db.drop_all()
            db.configure_mappers()
            db.create_all()
            print('Database tables created')

    @app.cli.group()
    def mrf():
        """Message Rewrite Facility commands."""
        pass

    @mrf.command()
    def describe():
        """Print the MRF transparency report."""
        config = MRFConfig.from_app_config(current_app.config)
        chain = PolicyChain.from_config(config)
        report = chain.transparency_report()
        if not report:
            print('MRF_TRANSPARENCY is off, nothing would be published.')
            return
        print(json.dumps(report, indent=2, sort_keys=True))

    @mrf.command('check-host')
    @click.argument('host')
    def check_host(host):
        """Show which MRF_SIMPLE lists match HOST."""
        config = MRFConfig.from_app_config(current_app.config)
        matched = False
        for key in SIMPLE_RULE_KEYS:
            rules = config.rules(key)
            if rules.matches(host):
                matched = True
                reason = rules.reason_for(host)
                print(f"{key}: {reason}" if reason else key)
        if config.rules('accept') and not config.rules('accept').matches(host) and host.lower() != config.server_name:
            matched = True
            print('not in accept list')
        if not matched:
            print(f'{host} matches no MRF_SIMPLE list')

    @mrf.command('send-queue')
    def send_queue():
        """Publish outbound activities that were committed but never reached Redis."""
        with app.app_context():
            message_ids = get_producer().publish_unsent()
            print(f'Published {len(message_ids)} queued activities')
