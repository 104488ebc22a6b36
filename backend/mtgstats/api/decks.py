from flask import Blueprint, current_app, jsonify, request

from mtgstats import db
from mtgstats.errors import InvalidInput, NotFound
from mtgstats.models import Deck
from mtgstats.services import storage
from mtgstats.services.games import clock

decks = Blueprint('decks', __name__)


def _get_deck_or_404(deck_id):
    deck = db.session.get(Deck, deck_id)
    if deck is None:
        raise NotFound('Deck not found')
    return deck


def _parse_name():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput('JSON body required')
    name = data.get('name')
    if not isinstance(name, str) or not 2 <= len(name.strip()) <= 150:
        raise InvalidInput('Name must be 2 to 150 characters')
    return name.strip()


@decks.route('', methods=['GET'])
def list_decks():
    return jsonify([d.to_dict() for d in Deck.query.order_by(Deck.id.desc()).all()])


@decks.route('/<int:deck_id>', methods=['GET'])
def get_deck(deck_id):
    return jsonify(_get_deck_or_404(deck_id).to_dict())


@decks.route('', methods=['POST'])
def create_deck():
    deck = Deck(name=_parse_name())
    db.session.add(deck)
    db.session.commit()
    return jsonify(deck.to_dict()), 201


@decks.route('/<int:deck_id>', methods=['PUT'])
def update_deck(deck_id):
    name = _parse_name()
    deck = _get_deck_or_404(deck_id)
    deck.name = name
    db.session.commit()
    return jsonify(deck.to_dict())


@decks.route('/<int:deck_id>', methods=['DELETE'])
def delete_deck(deck_id):
    deck = _get_deck_or_404(deck_id)
    # Game seats keep their deck_id/deck_name snapshot
    urls = (deck.image_url, deck.avatar_url)
    db.session.delete(deck)
    db.session.commit()
    for url in urls:
        storage.remove_file(url)
    return jsonify({'message': 'Deck deleted', 'id': deck_id})


@decks.route('/<int:deck_id>/image', methods=['POST'])
def upload_deck_image(deck_id):
    image = request.files.get('image')
    avatar = request.files.get('avatar')
    if image is None:
        raise InvalidInput('The image field is required')
    if avatar is None:
        raise InvalidInput('The avatar field is required')
    deck = _get_deck_or_404(deck_id)
    # Both files are checked before either touches the disk
    image_data, image_ext = storage.check_image(image)
    avatar_data, avatar_ext = storage.check_image(avatar)

    image_url = storage.write_deck_image(image_data, image_ext, deck.id)
    avatar_url = storage.write_deck_image(avatar_data, avatar_ext, deck.id, '_avatar')
    deck.image_url = image_url
    deck.avatar_url = avatar_url
    # Same file names on re-upload; bump so cache-busted URLs change
    deck.updated_at = clock.utcnow()
    db.session.commit()
    current_app.logger.info(f"[deck-image] deck={deck.id} image={image_url} avatar={avatar_url}")
    payload = deck.to_dict()
    return jsonify({
        'message': 'Image and avatar uploaded',
        'image_url': payload['image_url'],
        'avatar_url': payload['avatar_url'],
        'deck': payload,
    })


@decks.route('/<int:deck_id>/image', methods=['DELETE'])
def delete_deck_image(deck_id):
    deck = _get_deck_or_404(deck_id)
    if not deck.image_url and not deck.avatar_url:
        return jsonify({'message': 'Deck has no image or avatar', 'deck': deck.to_dict()})
    urls = (deck.image_url, deck.avatar_url)
    deck.image_url = ''
    deck.avatar_url = ''
    db.session.commit()
    for url in urls:
        storage.remove_file(url)
    return jsonify({'message': 'Image and avatar removed', 'deck': deck.to_dict()})
