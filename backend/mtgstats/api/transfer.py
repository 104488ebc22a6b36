from flask import Blueprint, Response, current_app, jsonify, request

from mtgstats import db
from mtgstats.auth import admin_required
from mtgstats.services import transfer as svc

transfer = Blueprint('transfer', __name__)


@transfer.route('/export/all', methods=['GET'])
@admin_required
def export_all():
    """Users, decks (with inline images) and games as a gzip JSON archive."""
    payload = svc.build_export_payload(db.session)
    blob = svc.pack(payload)
    current_app.logger.info(
        f"[export] users={len(payload['users'])} decks={len(payload['decks'])} "
        f"games={len(payload['games'])} bytes={len(blob)}"
    )
    return Response(
        blob,
        mimetype='application/gzip',
        headers={'Content-Disposition': f'attachment; filename="{svc.EXPORT_FILENAME}"'},
    )


@transfer.route('/import/all', methods=['POST'])
@admin_required
def import_all():
    """Replace every user, deck, game and deck image with the uploaded archive."""
    upload = request.files.get('file')
    blob = upload.read() if upload is not None else request.get_data()
    payload = svc.unpack(blob)
    summary = svc.import_payload(db.session, payload)
    return jsonify({'message': 'All data replaced from archive', 'imported': summary})
