from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Crypto Battle Arena relay!'})

@main.route('/health')
def health():
    return jsonify({'status': 'ok', 'channel': current_app.config.get('ARENA_CHANNEL')})
