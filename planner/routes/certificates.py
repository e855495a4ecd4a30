from __future__ import annotations

from flask import Blueprint, Response, jsonify

from ..services import certificates as certificate_service
from ..shared.rbac import certificate_issuer_required

bp = Blueprint("certificates", __name__, url_prefix="/api/enrollments")


@bp.get("/<int:enrollment_id>/certificate/meta")
@certificate_issuer_required
def certificate_meta(enrollment_id: int, current_user):
    return jsonify(certificate_service.get_eligibility(enrollment_id))


@bp.get("/<int:enrollment_id>/certificate")
@certificate_issuer_required
def certificate_pdf(enrollment_id: int, current_user):
    doc = certificate_service.issue_certificate(enrollment_id)
    return Response(
        doc.content,
        mimetype=doc.mimetype,
        headers={
            "Content-Disposition": f'attachment; filename="{doc.filename}"',
            "X-Certificate-Number": doc.number,
        },
    )
