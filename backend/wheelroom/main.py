from flask import Blueprint, jsonify

from wheelroom import registry

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the wheel room server!'})

@main.route('/health')
def health():
    return jsonify({'status': 'ok', 'rooms': len(registry)})
