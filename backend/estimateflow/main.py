from flask import Blueprint, jsonify

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the estimateflow session server!'})

@main.route('/health')
def health():
    return jsonify({'ok': True})
