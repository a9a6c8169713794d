from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
import dataclasses
import random
import time
from config import Config

socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])

    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from arena.routes import main
    flask_app.register_blueprint(main)

    from arena.api.channels import channels
    flask_app.register_blueprint(channels, url_prefix='/api/channels')

    # Register Socket.IO event handlers
    from arena.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('arena-peer')
    @click.option('--url', default='http://localhost:5000', show_default=True, help='Relay server URL.')
    @click.option('--channel', default=None, help='Presence channel; ARENA_CHANNEL when omitted.')
    @click.option('--name', required=True, help='Display name for this peer.')
    @click.option('--team', type=click.Choice(['ALPHA', 'BETA']), default=None, help='Team; random when omitted.')
    def arena_peer_command(url, channel, name, team):
        """Runs one arena peer against a relay server until interrupted."""
        from arena.models import Participant
        from arena.services.game.orchestrator import GameOrchestrator
        from arena.settings import GameSettings
        from arena.transport import SocketIOTransport

        settings = GameSettings.from_config(flask_app.config)
        if channel:
            settings = dataclasses.replace(settings, channel=channel)
        participant = Participant.create(name, team)
        node = GameOrchestrator(
            participant,
            SocketIOTransport(url, logger=flask_app.logger),
            settings=settings,
            logger=flask_app.logger,
        )
        node.start()
        click.echo(f'Peer {participant.name} ({participant.team}) joined {settings.channel} as {participant.id}')
        try:
            while node.running:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            node.stop()

    @click.command('arena-sim')
    @click.option('--peers', default=4, show_default=True, type=click.IntRange(1, 50))
    @click.option('--seconds', default=120, show_default=True, type=click.IntRange(1))
    @click.option('--seed', default=None, type=int, help='Seed for simulated votes.')
    def arena_sim_command(peers, seconds, seed):
        """Runs several peers in-process on a local hub and reports each round."""
        from arena.models import ALPHA, BETA, DOWN, RESULT, UP, Participant
        from arena.services.game.orchestrator import GameOrchestrator
        from arena.settings import GameSettings
        from arena.transport import LocalHub, LocalTransport

        rng = random.Random(seed)
        settings = GameSettings.from_config(flask_app.config)
        hub = LocalHub()
        nodes = []
        for i in range(peers):
            participant = Participant.create(f'unit-{i + 1}', ALPHA if i % 2 == 0 else BETA)
            node = GameOrchestrator(participant, LocalTransport(hub), settings=settings, logger=flask_app.logger)
            node.start()
            nodes.append(node)

        reported = set()
        deadline = time.time() + seconds
        try:
            while time.time() < deadline:
                for node in nodes:
                    if node.can_vote() and rng.random() < 0.3:
                        node.submit_vote(rng.choice((UP, DOWN)))
                view = nodes[-1].snapshot()
                if view.phase == RESULT and view.winner and view.phase_end_time not in reported:
                    reported.add(view.phase_end_time)
                    a, b = view.alpha_stats, view.beta_stats
                    click.echo(
                        f'[round] start={view.start_price:.2f} end={view.current_price:.2f} '
                        f'ALPHA={a.stance}/{a.conviction} BETA={b.stance}/{b.conviction} winner={view.winner}'
                    )
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            for node in nodes:
                node.stop()
        click.echo(f'Simulation finished after {len(reported)} resolved round(s).')

    flask_app.cli.add_command(arena_peer_command)
    flask_app.cli.add_command(arena_sim_command)

    return flask_app
